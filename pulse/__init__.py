"""Social Pulse: live follower counts relayed from the Meta Graph API"""

__version__ = "1.0.0"
