"""rohcverify - non-regression test harness for ROHC codecs."""

__version__ = "1.0.0"
