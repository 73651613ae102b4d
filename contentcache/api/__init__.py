"""
HTTP surface: collection reads, cache administration, image proxy, webhook.
"""
