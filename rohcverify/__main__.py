"""Allow running as ``python -m rohcverify``."""

from rohcverify.cli import main

if __name__ == "__main__":
    main()
