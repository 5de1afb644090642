"""Stitch static site generator.

Stitch reads pages and reusable HTML templates from a source tree, resolves
the `{{ ... }}` directives embedded in them and writes static HTML into an
output tree.

The main entry point is the CLI module, which provides commands for
scaffolding new projects, building sites, and running the development server.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
