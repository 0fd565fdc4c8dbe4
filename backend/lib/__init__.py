"""Backend utilities"""
from .config import Settings, get_settings
from .supabase_client import get_supabase_client
from .connection import ConnectionEmitter, InvalidMessage, parse_client_message

__all__ = [
    "Settings",
    "get_settings",
    "get_supabase_client",
    "ConnectionEmitter",
    "InvalidMessage",
    "parse_client_message",
]
