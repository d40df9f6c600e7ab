from pagewatch.dispatch.arq_dispatcher import ArqDispatcher
from pagewatch.dispatch.dispatcher import Dispatcher
from pagewatch.dispatch.local_dispatcher import LocalDispatcher
from pagewatch.dispatch.qstash_dispatcher import QStashDispatcher
from pagewatch.main.config import Settings


def create_dispatcher(settings: Settings) -> Dispatcher:
    match settings.dispatcher_backend:
        case "arq":
            return ArqDispatcher(settings)
        case "local":
            return LocalDispatcher(settings)
        case _:
            return QStashDispatcher(settings)


__all__ = [
    "ArqDispatcher",
    "Dispatcher",
    "LocalDispatcher",
    "QStashDispatcher",
    "create_dispatcher",
]
