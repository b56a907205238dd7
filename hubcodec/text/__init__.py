"""Editable text form of hub protocol records."""

from .parser import from_text as from_text
from .render import to_text as to_text
