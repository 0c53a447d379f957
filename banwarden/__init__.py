"""BanWarden — intrusion-response daemon for failed Windows logons."""

__version__ = "1.0.0"
