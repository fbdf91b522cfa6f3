"""tiny: small sites described in YAML.

A site definition lists layouts and pages; each page is rendered with
Jinja2 templates (``[[ ]]`` delimiters by default) and served by a WSGI
application. The same site can be exported to static files.

Typical use::

    from tiny import load_site
    from tiny.server import serve

    site = load_site("site.yml")
    serve(site, port=8000)
"""

from .errors import GeneratorError, SiteConfigError, SiteError, error_from_exception
from .metadata import MetaData
from .site import (
    PageData,
    RobotsTXT,
    Site,
    SiteMap,
    SiteMapURL,
    UserAgent,
    load_site,
)
from .wsgi import Request, Response

__all__ = [
    "GeneratorError",
    "MetaData",
    "PageData",
    "Request",
    "Response",
    "RobotsTXT",
    "Site",
    "SiteConfigError",
    "SiteError",
    "SiteMap",
    "SiteMapURL",
    "UserAgent",
    "__version__",
    "error_from_exception",
    "load_site",
]
__version__ = "0.1.0"
