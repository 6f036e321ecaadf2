import logging
from typing import List

from vpc_nuke_modules.aws_resource import SecurityGroup, SecurityGroupRule
from vpc_nuke_modules.resource_lister import group_filter

logger = logging.getLogger(__name__)


class SecurityGroupManager:
    def __init__(self, manager):
        self.manager = manager

    def purge_rules(self, sg: SecurityGroup, stage: str = "security_groups") -> None:
        """Revoke every ingress and egress rule of the group, default group included"""
        rules: List[SecurityGroupRule] = self.manager.lister.list_all(
            "security_group_rules", [group_filter(sg.resource_id)]
        )
        if not rules:
            return

        logger.debug(f"[{self.manager.region}] Purging {len(rules)} rule(s) of security group {sg.label}")
        ingress_rules = [rule.resource_id for rule in rules if not rule.is_egress]
        egress_rules = [rule.resource_id for rule in rules if rule.is_egress]

        if ingress_rules:
            self.manager.mutate(
                stage, "security group", sg.resource_id, f"{sg.label} ingress {', '.join(ingress_rules)}",
                "revoke ingress rules of", "revoke_security_group_ingress",
                GroupId=sg.resource_id, SecurityGroupRuleIds=ingress_rules,
            )
        if egress_rules:
            self.manager.mutate(
                stage, "security group", sg.resource_id, f"{sg.label} egress {', '.join(egress_rules)}",
                "revoke egress rules of", "revoke_security_group_egress",
                GroupId=sg.resource_id, SecurityGroupRuleIds=egress_rules,
            )

    def delete_group(self, sg: SecurityGroup, stage: str = "security_groups") -> None:
        if sg.is_default:
            logger.debug(f"[{self.manager.region}] Keeping default security group {sg.resource_id}")
            return
        self.manager.mutate(
            stage, "security group", sg.resource_id, sg.label,
            "delete", "delete_security_group", GroupId=sg.resource_id,
        )
