"""EBS volume resource kind."""

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

VOLUME_TYPES = ("gp2", "gp3", "io1", "io2", "st1", "sc1", "standard")

# DescribeVolumes accepts MaxResults between 5 and 500
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class VolumeSpec(SpecBase):
    """Desired EBS volume. ``size`` is in GiB."""

    type_name: ClassVar[str] = "ebs_volume"

    availability_zone: str = ""
    size: int = 8
    volume_type: str = "gp3"

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.availability_zone:
            raise ValidationError(
                "availability_zone", self.availability_zone, "An availability zone is required"
            )
        if not isinstance(self.size, int) or self.size <= 0:
            raise ValidationError("size", self.size, "Must be a positive number of GiB")
        if self.volume_type not in VOLUME_TYPES:
            raise ValidationError(
                "volume_type", self.volume_type, f"Must be one of {', '.join(VOLUME_TYPES)}"
            )


@dataclass(frozen=True)
class VolumeOutput(OutputBase):
    """Observed EBS volume attributes."""

    volume_id: str
    state: str
    attached_to: str | None = None


VolumeResource = Resource[VolumeSpec, VolumeOutput]


class EbsVolumeProvider(AwsProvider):
    """
    Provider adapter for EBS volumes.

    Growing a volume or changing its type is done in place. Shrinking it or
    moving it to another availability zone would lose data, so those are
    reported as errors instead of being converged.
    """

    service_name = "ec2"
    type_name = VolumeSpec.type_name

    def _to_resource(self, volume: dict[str, Any]) -> VolumeResource | None:
        tags = tags_to_dict(volume.get("Tags"))
        name = tags.get(NAME_TAG_KEY)
        if not name:
            logger.warning("Skipping volume %s: no %s tag", volume.get("VolumeId"), NAME_TAG_KEY)
            return None

        try:
            return self._build_resource(volume, name)
        except ValidationError as e:
            logger.warning("Skipping volume %s: %s", volume.get("VolumeId"), e)
            return None

    def _build_resource(self, volume: dict[str, Any], name: str) -> VolumeResource:
        attachments = volume.get("Attachments") or []
        spec = VolumeSpec(
            name=name,
            availability_zone=volume["AvailabilityZone"],
            size=volume["Size"],
            volume_type=volume.get("VolumeType", "gp3"),
        )
        output = VolumeOutput(
            volume_id=volume["VolumeId"],
            state=volume.get("State", "unknown"),
            attached_to=attachments[0].get("InstanceId") if attachments else None,
        )
        return Resource(spec=spec, output=output)

    async def list_page(self, scope: Scope, page_token: str | None) -> Page[VolumeResource]:
        client = await self._get_client()

        kwargs: dict[str, Any] = {
            "Filters": [self._scope_filter(scope)],
            "MaxResults": min(MAX_PAGE_SIZE, max(MIN_PAGE_SIZE, self.page_size)),
        }
        if page_token:
            kwargs["NextToken"] = page_token

        response = await client.describe_volumes(**kwargs)

        items: list[VolumeResource] = []
        for volume in response.get("Volumes", []):
            resource = self._to_resource(volume)
            if resource is not None:
                items.append(resource)

        return Page(items=items, next_token=response.get("NextToken") or None)

    async def create(self, spec: VolumeSpec) -> VolumeResource:
        client = await self._get_client()
        volume = await client.create_volume(
            AvailabilityZone=spec.availability_zone,
            Size=spec.size,
            VolumeType=spec.volume_type,
            TagSpecifications=[
                {"ResourceType": "volume", "Tags": self._tags_for(spec.name)},
            ],
        )
        return self._build_resource(volume, spec.name)

    async def destroy(self, resource: VolumeResource) -> None:
        client = await self._get_client()
        await client.delete_volume(VolumeId=resource.output.volume_id)

    async def sync(self, spec: VolumeSpec, resource: VolumeResource) -> VolumeResource:
        actual = resource.spec
        if spec == actual:
            return resource

        if spec.availability_zone != actual.availability_zone:
            raise UpdateError(
                f"Cannot move volume from {actual.availability_zone} to "
                f"{spec.availability_zone}",
                type_name=self.type_name,
                resource_id=spec.name,
            )
        if spec.size < actual.size:
            raise UpdateError(
                f"Cannot shrink volume from {actual.size} GiB to {spec.size} GiB",
                type_name=self.type_name,
                resource_id=spec.name,
            )

        kwargs: dict[str, Any] = {"VolumeId": resource.output.volume_id}
        if spec.size != actual.size:
            kwargs["Size"] = spec.size
        if spec.volume_type != actual.volume_type:
            kwargs["VolumeType"] = spec.volume_type

        client = await self._get_client()
        await client.modify_volume(**kwargs)
        logger.info(
            "Modified volume %s (%s): %s",
            spec.name,
            resource.output.volume_id,
            ", ".join(k for k in kwargs if k != "VolumeId"),
        )
        return Resource(
            spec=dataclasses.replace(actual, size=spec.size, volume_type=spec.volume_type),
            output=resource.output,
        )
