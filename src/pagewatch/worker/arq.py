from pagewatch.main.config import get_settings
from pagewatch.redis.connection import arq_redis_settings
from pagewatch.worker.worker import deliver_continuation, shutdown, startup

settings = get_settings()


class WorkerSettings:
    functions = [deliver_continuation]
    redis_settings = arq_redis_settings(settings)
    on_startup = startup
    on_shutdown = shutdown
    # Retries are decided per message by deliver_continuation
    max_tries = settings.dispatch_retries + 1
    job_timeout = settings.job_timeout_seconds + 60
    health_check_interval = 60
