"""
Network Utilities for the Clothing Store backend
================================================
Resolves the caller's IP for webhook and audit logging.
"""

import logging
from django.conf import settings
from django.http import HttpRequest

logger = logging.getLogger(__name__)


# Proxy headers in order of preference
IP_HEADERS = [
    'HTTP_X_FORWARDED_FOR',
    'HTTP_X_REAL_IP',
    'HTTP_CF_CONNECTING_IP',  # Cloudflare
    'REMOTE_ADDR',
]

PRIVATE_IP_PREFIXES = (
    '10.',
    '172.16.', '172.17.', '172.18.', '172.19.',
    '172.20.', '172.21.', '172.22.', '172.23.',
    '172.24.', '172.25.', '172.26.', '172.27.',
    '172.28.', '172.29.', '172.30.', '172.31.',
    '192.168.',
    '127.',
    '169.254.',
    'fc', 'fd',
    '::1',
    'fe80:',
)


def is_private_ip(ip: str) -> bool:
    if not ip:
        return True
    ip_lower = ip.lower()
    return any(ip_lower.startswith(prefix) for prefix in PRIVATE_IP_PREFIXES)


def get_client_ip(request: HttpRequest) -> str:
    """
    Get the real client IP address from request.

    Honors NUM_PROXIES so a client cannot spoof its address by prepending
    entries to X-Forwarded-For.
    """
    num_proxies = getattr(settings, 'NUM_PROXIES', 0)

    for header in IP_HEADERS:
        ip_value = request.META.get(header)
        if not ip_value:
            continue

        if header == 'HTTP_X_FORWARDED_FOR':
            ips = [ip.strip() for ip in ip_value.split(',') if ip.strip()]
            if not ips:
                continue
            if num_proxies > 0 and len(ips) > num_proxies:
                return ips[len(ips) - num_proxies - 1]
            public_ips = [ip for ip in ips if not is_private_ip(ip)]
            return public_ips[0] if public_ips else ips[0]

        return ip_value.strip()

    return '0.0.0.0'
