"""Expose the resolver as a Jinja2 template filter.

Usage::

    env = Environment(loader=..., enable_async=True)
    register_link_preview(env, resolver)

    {{ "https://example.com/post" | link_preview }}

Jinja awaits async filters only in async environments, so a synchronous
``Environment`` is rejected up front.
"""

from __future__ import annotations

from jinja2 import Environment
from markupsafe import Markup

from linkpreview.services.preview.formatter import error_fragment
from linkpreview.services.preview.resolver import PreviewResolver


def register_link_preview(
    env: Environment,
    resolver: PreviewResolver,
    name: str = "link_preview",
) -> None:
    """Install ``resolver.resolve`` on *env* as the async filter *name*."""
    if not env.is_async:
        raise ValueError(
            "The link preview filter needs an Environment created with enable_async=True"
        )

    async def link_preview(url: object) -> Markup:
        # None and undefined template variables are falsy.
        if not url:
            return Markup(error_fragment("No link given"))
        return Markup(await resolver.resolve(str(url)))

    env.filters[name] = link_preview
