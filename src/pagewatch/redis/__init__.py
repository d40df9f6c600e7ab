from pagewatch.redis.connection import arq_redis_settings, create_connection_pool, redis_url

__all__ = ["arq_redis_settings", "create_connection_pool", "redis_url"]
