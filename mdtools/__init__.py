"""Sega Mega Drive sprite mappings, DPLCs, SMPS FM voices and level chunk splitting."""

__version__ = "0.2.0"