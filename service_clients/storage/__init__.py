from service_clients.storage.cache import CacheConfig, ResponseCache, make_cache_key

__all__ = ["CacheConfig", "ResponseCache", "make_cache_key"]
