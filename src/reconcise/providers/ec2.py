"""EC2 instance resource kind."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, ClassVar

from ..exceptions import UpdateError, ValidationError
from ..models import OutputBase, Page, Resource, SpecBase
from ..naming import Scope
from .aws import NAME_TAG_KEY, AwsProvider, tags_to_dict

logger = logging.getLogger(__name__)

# Terminated and shutting-down instances no longer count as actual state
LIVE_STATES = ["pending", "running", "stopping", "stopped"]

# Changing any of these requires a new instance
REPLACE_FIELDS = ("image_id", "subnet_id", "key_name")

# DescribeInstances rejects MaxResults below 5
MIN_PAGE_SIZE = 5


@dataclass(frozen=True)
class InstanceSpec(SpecBase):
    """
    Desired EC2 instance.

    ``subnet_id`` and ``key_name`` left as None accept whatever AWS chose.
    """

    type_name: ClassVar[str] = "ec2_instance"

    image_id: str = ""
    instance_type: str = "t3.micro"
    subnet_id: str | None = None
    key_name: str | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.image_id:
            raise ValidationError("image_id", self.image_id, "An AMI id is required")


@dataclass(frozen=True)
class InstanceOutput(OutputBase):
    """Observed EC2 instance attributes."""

    instance_id: str
    state: str
    private_ip: str | None = None
    public_ip: str | None = None


InstanceResource = Resource[InstanceSpec, InstanceOutput]


def _drifted_fields(spec: InstanceSpec, actual: InstanceSpec) -> list[str]:
    """Fields where ``spec`` asks for something other than what exists."""
    drifted = []
    for f in dataclasses.fields(spec):
        wanted = getattr(spec, f.name)
        if wanted is None:
            continue
        if wanted != getattr(actual, f.name):
            drifted.append(f.name)
    return drifted


class Ec2InstanceProvider(AwsProvider):
    """
    Provider adapter for EC2 instances.

    Instances are matched by their ``Name`` tag and owned through the scope
    tag applied at launch.
    """

    service_name = "ec2"
    type_name = InstanceSpec.type_name

    def _to_resource(self, instance: dict[str, Any]) -> InstanceResource | None:
        """Map a listed instance, or None if its Name tag cannot be a join key."""
        tags = tags_to_dict(instance.get("Tags"))
        name = tags.get(NAME_TAG_KEY)
        if not name:
            logger.warning(
                "Skipping instance %s: no %s tag", instance.get("InstanceId"), NAME_TAG_KEY
            )
            return None

        try:
            return self._build_resource(instance, name)
        except ValidationError as e:
            logger.warning("Skipping instance %s: %s", instance.get("InstanceId"), e)
            return None

    def _build_resource(self, instance: dict[str, Any], name: str) -> InstanceResource:
        spec = InstanceSpec(
            name=name,
            image_id=instance["ImageId"],
            instance_type=instance["InstanceType"],
            subnet_id=instance.get("SubnetId"),
            key_name=instance.get("KeyName"),
        )
        output = InstanceOutput(
            instance_id=instance["InstanceId"],
            state=instance.get("State", {}).get("Name", "unknown"),
            private_ip=instance.get("PrivateIpAddress"),
            public_ip=instance.get("PublicIpAddress"),
        )
        return Resource(spec=spec, output=output)

    async def list_page(self, scope: Scope, page_token: str | None) -> Page[InstanceResource]:
        client = await self._get_client()

        kwargs: dict[str, Any] = {
            "Filters": [
                self._scope_filter(scope),
                {"Name": "instance-state-name", "Values": LIVE_STATES},
            ],
            "MaxResults": max(MIN_PAGE_SIZE, self.page_size),
        }
        if page_token:
            kwargs["NextToken"] = page_token

        response = await client.describe_instances(**kwargs)

        items: list[InstanceResource] = []
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                resource = self._to_resource(instance)
                if resource is not None:
                    items.append(resource)

        return Page(items=items, next_token=response.get("NextToken") or None)

    async def create(self, spec: InstanceSpec) -> InstanceResource:
        client = await self._get_client()

        kwargs: dict[str, Any] = {
            "ImageId": spec.image_id,
            "InstanceType": spec.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "TagSpecifications": [
                {"ResourceType": "instance", "Tags": self._tags_for(spec.name)},
            ],
        }
        if spec.subnet_id:
            kwargs["SubnetId"] = spec.subnet_id
        if spec.key_name:
            kwargs["KeyName"] = spec.key_name

        response = await client.run_instances(**kwargs)
        # RunInstances echoes the request tags only on some endpoints
        return self._build_resource(response["Instances"][0], spec.name)

    async def destroy(self, resource: InstanceResource) -> None:
        client = await self._get_client()
        await client.terminate_instances(InstanceIds=[resource.output.instance_id])

    async def sync(self, spec: InstanceSpec, resource: InstanceResource) -> InstanceResource:
        drifted = _drifted_fields(spec, resource.spec)
        if not drifted:
            return resource

        if any(name in REPLACE_FIELDS for name in drifted):
            logger.info(
                "Replacing instance %s (%s): %s changed",
                spec.name,
                resource.output.instance_id,
                ", ".join(drifted),
            )
            await self.destroy(resource)
            return await self.create(spec)

        # Only instance_type is left, which EC2 can change on a stopped instance
        if resource.output.state != "stopped":
            raise UpdateError(
                f"Changing instance type to {spec.instance_type} requires a stopped instance "
                f"(state: {resource.output.state})",
                type_name=self.type_name,
                resource_id=spec.name,
            )

        client = await self._get_client()
        await client.modify_instance_attribute(
            InstanceId=resource.output.instance_id,
            InstanceType={"Value": spec.instance_type},
        )
        return Resource(
            spec=dataclasses.replace(resource.spec, instance_type=spec.instance_type),
            output=resource.output,
        )
