import logging
from typing import Iterable

from vpc_nuke_modules.aws_resource import Route, RouteTable
from vpc_nuke_modules.errors import ValidationError

logger = logging.getLogger(__name__)


class RouteTableManager:
    def __init__(self, manager):
        self.manager = manager

    def purge(self, route_tables: Iterable[RouteTable], stage: str = "purge_route_tables") -> None:
        """Strip non-local routes and non-main associations from each table"""
        for rt in route_tables:
            self.purge_table(rt, stage)

    def purge_table(self, rt: RouteTable, stage: str = "purge_route_tables") -> None:
        if not rt.routes:
            # skip only this table, the others still need purging
            logger.debug(f"[{self.manager.region}] Route table {rt.label} has no routes")
            return

        logger.info(f"[{self.manager.region}] Purging route table {rt.label}")
        for route in rt.routes:
            if route.is_local:
                continue
            self.delete_route(rt, route, stage)

        for assoc in rt.associations:
            if assoc.main:
                continue
            target = f" from {assoc.subnet_id}" if assoc.subnet_id else ""
            self.manager.mutate(
                stage, "route table association", assoc.association_id,
                f"{assoc.association_id} of {rt.label}{target}",
                "disassociate", "disassociate_route_table", AssociationId=assoc.association_id,
            )

    def delete_route(self, rt: RouteTable, route: Route, stage: str = "purge_route_tables") -> None:
        destinations = route.destinations()
        if len(destinations) != 1:
            raise ValidationError(
                f"Route in {rt.resource_id} must have exactly one destination, got {destinations or 'none'}"
            )
        key, value = destinations[0]
        self.manager.mutate(
            stage, "route", f"{rt.resource_id}:{value}", f"{value} from {rt.label}",
            "delete", "delete_route", RouteTableId=rt.resource_id, **{key: value},
        )

    def delete_table(self, rt: RouteTable, stage: str = "route_tables") -> None:
        if rt.has_main_association:
            logger.debug(f"[{self.manager.region}] Keeping main route table {rt.resource_id}")
            return
        self.manager.mutate(
            stage, "route table", rt.resource_id, rt.label,
            "delete", "delete_route_table", RouteTableId=rt.resource_id,
        )
