"""Reading analytics for KOReader statistics: sessions, completions, streaks, calendar and recap."""

__version__ = "0.1.0"
