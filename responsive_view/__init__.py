"""Responsive View: multi-device live preview over the Chrome DevTools protocol."""
