"""
LiveCoach real-time coaching hub.

Presence, room-scoped broadcast messaging, ephemeral chat history, live
biometric streaming and anomaly alerting for live trainer sessions.
"""

__version__ = "0.1.0"
