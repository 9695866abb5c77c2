"""
lavasrc
───────
Spotify / Apple Music / Deezer catalog sources and lyrics providers for an
audio-playback host, packaged as a reusable Django app.

Catalog tracks carry metadata only; playback goes through the host's own
sources via the mirroring resolver (see ``lavasrc.mirror``).
"""

__version__ = "4.0.0"
