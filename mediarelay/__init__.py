"""Paste a video URL, pick a format, download it remuxed or transcoded."""
