"""Messaging layer – Slack Web API client and recommendation delivery."""

from messaging.dispatcher import Dispatcher, SlackDispatcher, compose_recommendation_message
from messaging.slack_client import SlackApiError, SlackClient

__all__ = [
    "Dispatcher",
    "SlackApiError",
    "SlackClient",
    "SlackDispatcher",
    "compose_recommendation_message",
]
