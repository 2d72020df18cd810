"""Test utilities for building and inspecting configurations."""

from harvest.definition import ScraperConfiguration, parse_config
from harvest.scraper import ScraperResult

BASE_URL = "https://books.test"

BOOKS_HTML = """
<html>
<head><title>Books</title></head>
<body>
    <ul id="books">
        <li class="book"><a href="/books/1">Dune</a></li>
        <li class="book"><a href="/books/2">Emma</a></li>
        <li class="book"><a href="/books/3">Ulysses</a></li>
    </ul>
    <p class="footer">3 books</p>
</body>
</html>
"""


def config(body: str, **root_attributes: str) -> ScraperConfiguration:
    """Wrap processor XML in a ``<config>`` root and parse it.

    Example:
        configuration = config('<def var="x" value="1"/>', charset="UTF-8")
    """
    attributes = "".join(
        f' {name}="{value}"' for name, value in root_attributes.items()
    )
    return parse_config(f"<config{attributes}>{body}</config>")


def values(result: ScraperResult, name: str) -> list[str]:
    """Return the string forms of the items of a result variable."""
    return [item.to_string() for item in result.variables[name].to_list()]


def value(result: ScraperResult, name: str) -> str:
    """Return the string form of a result variable (``""`` when unbound)."""
    variable = result.variables.get(name)
    return variable.to_string() if variable is not None else ""
