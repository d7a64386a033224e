"""Deck record interface and the YAML deck adapter."""
from .loader import keywords_from_data, load_deck, split_sections
from .record import DEFAULT, DeckItem, DeckKeyword, DeckRecord, Defaulted, Location

__all__ = [
    "DEFAULT",
    "DeckItem",
    "DeckKeyword",
    "DeckRecord",
    "Defaulted",
    "Location",
    "keywords_from_data",
    "load_deck",
    "split_sections",
]
