from pagewatch.kv.store import KeyValueStore, create_kv_store

__all__ = ["KeyValueStore", "create_kv_store"]
