"""Parser package."""

from .base import (
    Block,
    Bold,
    Callout,
    Code,
    CodeBlock,
    DirectiveBlock,
    Document,
    Embed,
    FootnoteRef,
    FootnotesSection,
    Heading,
    Highlight,
    Image,
    Inline,
    Italic,
    Link,
    ListBlock,
    ListItem,
    Math,
    Paragraph,
    Quote,
    Strikethrough,
    Table,
    Text,
    ThematicBreak,
    WikiLink,
)
from .inline_parser import InlineParser
from .md_parser import DocumentParser
from .preprocess import Preprocessed, preprocess

__all__ = [
    "Block",
    "Bold",
    "Callout",
    "Code",
    "CodeBlock",
    "DirectiveBlock",
    "Document",
    "DocumentParser",
    "Embed",
    "FootnoteRef",
    "FootnotesSection",
    "Heading",
    "Highlight",
    "Image",
    "Inline",
    "InlineParser",
    "Italic",
    "Link",
    "ListBlock",
    "ListItem",
    "Math",
    "Paragraph",
    "Preprocessed",
    "Quote",
    "Strikethrough",
    "Table",
    "Text",
    "ThematicBreak",
    "WikiLink",
    "preprocess",
]
