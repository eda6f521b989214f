"""Non-regression plugin package.

Importing ``rohcverify.plugins.nonreg`` registers :class:`NonregPlugin`
through the ``@register_plugin`` decorator.
"""

from .plugin import NonregPlugin

__all__ = ["NonregPlugin"]
