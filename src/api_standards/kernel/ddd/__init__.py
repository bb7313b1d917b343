"""DDD building blocks: public re-export surface."""

from api_standards.kernel.ddd.domain_event import DomainEvent

__all__ = ["DomainEvent"]
