"""
Logging utility functions and helpers.
"""

import logging
from typing import Any, Dict


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.
    
    Args:
        name: Module name (usually __name__)
        
    Returns:
        Configured logger
        
    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove sensitive information from log data.
    
    Args:
        data: Dictionary that may contain sensitive fields
        
    Returns:
        Sanitized dictionary safe for logging

    Tokens, authorization codes and PKCE verifiers keep their first 8
    characters for correlation; everything else sensitive is redacted.
    """
    sensitive_fields = {
        'password', 'token', 'secret', 'api_key', 'access_token',
        'refresh_token', 'code', 'code_verifier', 'code_challenge', 'state'
    }
    partial_fields = ('token', 'code', 'state')
    
    sanitized = data.copy()
    
    for key, value in sanitized.items():
        lowered = key.lower()
        # Check if key contains sensitive field name (case-insensitive)
        if any(sensitive in lowered for sensitive in sensitive_fields):
            if isinstance(value, str):
                if any(p in lowered for p in partial_fields) and len(value) > 8:
                    sanitized[key] = f"{value[:8]}..."
                else:
                    sanitized[key] = "***REDACTED***"
        
        # Recursively sanitize nested dictionaries
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
    
    return sanitized
