"""XML codec for scene objects and coalesced object containers.

Layout (one ``<Part>`` per prim, root first)::

    <SceneObjectGroup>
      <Position x= y= z=/>  <Rotation x= y= z= w=/>  <IsAttachment>
      <Part>
        <UUID> <Name> <Description> <CreatorID> <OwnerID> <LastOwnerID>
        <OffsetPosition/> <Permissions/>
        <Shape ...geometry...>
          <Scale/> <TextureEntry default= material=><Face .../></TextureEntry>
          <SculptTexture> <SculptType> <RenderMaterials><Material .../></RenderMaterials>
        </Shape>
        <Sound> <CollisionSound>
        <TaskInventory><Item .../></TaskInventory>
      </Part>
    </SceneObjectGroup>

A coalesced container is ``<CoalescedObject>`` holding one ``<Member>`` per
object, each with an ``<ItemPermissions>`` block and a ``<SceneObjectGroup>``.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple, Union
from uuid import UUID

from ..constants import AssetType
from ..errors import EntryDecodeError, decode_error
from ..model import (
    CoalescedObject,
    ItemPermissions,
    PrimShape,
    Quaternion,
    RenderMaterial,
    SceneObject,
    ScenePart,
    TaskItem,
    TextureEntry,
    TextureFace,
    Vector3,
)

__all__ = [
    "serialize_object",
    "deserialize_object",
    "serialize_coalesced",
    "deserialize_coalesced",
    "is_coalesced",
    "decode_object_asset",
    "member_objects",
]

GROUP_TAG = "SceneObjectGroup"
COALESCED_TAG = "CoalescedObject"

_SHAPE_INT_ATTRS = (
    "profile_curve",
    "path_curve",
    "path_begin",
    "path_end",
    "path_scale_x",
    "path_scale_y",
    "profile_begin",
    "profile_end",
    "profile_hollow",
)

_PERMISSION_ATTRS = (
    ("base", "base_mask"),
    ("owner", "owner_mask"),
    ("next_owner", "next_owner_mask"),
    ("group", "group_mask"),
    ("everyone", "everyone_mask"),
)


# Writing ------------------------------------------------------------------


def _text(parent: ET.Element, tag: str, value: object) -> ET.Element:
    el = ET.SubElement(parent, tag)
    el.text = str(value)
    return el


def _vector(parent: ET.Element, tag: str, v: Vector3) -> None:
    ET.SubElement(parent, tag, x=repr(float(v.x)), y=repr(float(v.y)), z=repr(float(v.z)))


def _permissions(parent: ET.Element, tag: str, source) -> None:
    ET.SubElement(
        parent, tag, {attr: str(getattr(source, name)) for attr, name in _PERMISSION_ATTRS}
    )


def _shape_element(parent: ET.Element, shape: PrimShape) -> None:
    el = ET.SubElement(
        parent, "Shape", {name: str(getattr(shape, name)) for name in _SHAPE_INT_ATTRS}
    )
    _vector(el, "Scale", shape.scale)
    te = shape.texture_entry
    te_attrs = {"default": str(te.default_texture)}
    if te.default_material is not None:
        te_attrs["material"] = str(te.default_material)
    te_el = ET.SubElement(el, "TextureEntry", te_attrs)
    for index in sorted(te.faces):
        face = te.faces[index]
        face_attrs = {"index": str(index), "texture": str(face.texture_id)}
        if face.material_id is not None:
            face_attrs["material"] = str(face.material_id)
        ET.SubElement(te_el, "Face", face_attrs)
    if shape.sculpt_texture is not None:
        _text(el, "SculptTexture", shape.sculpt_texture)
    _text(el, "SculptType", shape.sculpt_type)
    mats = ET.SubElement(el, "RenderMaterials")
    for mat_id, mat in shape.render_materials.items():
        attrs = {"id": str(mat_id)}
        if mat.normal_id is not None:
            attrs["normal"] = str(mat.normal_id)
        if mat.specular_id is not None:
            attrs["specular"] = str(mat.specular_id)
        ET.SubElement(mats, "Material", attrs)


def _item_element(parent: ET.Element, item: TaskItem) -> None:
    ET.SubElement(
        parent,
        "Item",
        {
            "ItemID": str(item.item_id),
            "AssetID": str(item.asset_id),
            "Type": str(int(item.asset_type)),
            "InvType": str(item.inv_type),
            "Name": item.name,
            "Description": item.description,
            "OwnerID": str(item.owner_id),
            "CreatorID": str(item.creator_id),
            "LastOwnerID": str(item.last_owner_id),
            "BaseMask": str(item.base_mask),
            "OwnerMask": str(item.owner_mask),
            "NextOwnerMask": str(item.next_owner_mask),
            "Coalesced": "True" if item.coalesced else "False",
        },
    )


def _part_element(parent: ET.Element, part: ScenePart) -> None:
    el = ET.SubElement(parent, "Part")
    _text(el, "UUID", part.part_id)
    _text(el, "Name", part.name)
    _text(el, "Description", part.description)
    _text(el, "CreatorID", part.creator_id)
    _text(el, "OwnerID", part.owner_id)
    _text(el, "LastOwnerID", part.last_owner_id)
    _vector(el, "OffsetPosition", part.offset_position)
    _permissions(el, "Permissions", part)
    _shape_element(el, part.shape)
    if part.sound_id is not None:
        _text(el, "Sound", part.sound_id)
    if part.collision_sound_id is not None:
        _text(el, "CollisionSound", part.collision_sound_id)
    inv = ET.SubElement(el, "TaskInventory")
    for item in part.inventory:
        _item_element(inv, item)


def _group_element(obj: SceneObject) -> ET.Element:
    root = ET.Element(GROUP_TAG)
    _vector(root, "Position", obj.position)
    r = obj.rotation
    ET.SubElement(
        root, "Rotation", x=repr(float(r.x)), y=repr(float(r.y)), z=repr(float(r.z)), w=repr(float(r.w))
    )
    _text(root, "IsAttachment", "True" if obj.is_attachment else "False")
    for part in obj.parts:
        _part_element(root, part)
    return root


def _to_text(root: ET.Element) -> str:
    return ET.tostring(root, encoding="unicode")


def serialize_object(obj: SceneObject) -> str:
    return _to_text(_group_element(obj))


def serialize_coalesced(coalesced: CoalescedObject) -> str:
    root = ET.Element(COALESCED_TAG)
    for i, obj in enumerate(coalesced.objects):
        member = ET.SubElement(root, "Member")
        perms = (
            coalesced.permissions[i]
            if i < len(coalesced.permissions)
            else ItemPermissions()
        )
        _permissions(member, "ItemPermissions", perms)
        member.append(_group_element(obj))
    return _to_text(root)


# Reading ------------------------------------------------------------------


def _parse_root(data: Union[bytes, str]) -> ET.Element:
    try:
        return ET.fromstring(data)
    except ET.ParseError as e:
        raise decode_error(f"Malformed object XML: {e}") from e


def _child(el: ET.Element, tag: str) -> ET.Element:
    found = el.find(tag)
    if found is None:
        raise decode_error(f"<{el.tag}> has no <{tag}> element")
    return found


def _child_text(el: ET.Element, tag: str, default: Optional[str] = None) -> str:
    found = el.find(tag)
    if found is None:
        if default is None:
            raise decode_error(f"<{el.tag}> has no <{tag}> element")
        return default
    return found.text or ""


def _opt_uuid(el: ET.Element, tag: str) -> Optional[UUID]:
    found = el.find(tag)
    if found is None or not (found.text or "").strip():
        return None
    return UUID(found.text.strip())


def _opt_attr_uuid(el: ET.Element, name: str) -> Optional[UUID]:
    raw = el.get(name)
    return UUID(raw) if raw else None


def _read_vector(el: ET.Element) -> Vector3:
    return Vector3(float(el.get("x", 0)), float(el.get("y", 0)), float(el.get("z", 0)))


def _read_masks(el: Optional[ET.Element], target) -> None:
    if el is None:
        return
    for attr, name in _PERMISSION_ATTRS:
        if attr in el.attrib:
            setattr(target, name, int(el.get(attr)))


def _read_shape(el: ET.Element) -> PrimShape:
    shape = PrimShape()
    for name in _SHAPE_INT_ATTRS:
        if name in el.attrib:
            setattr(shape, name, int(el.get(name)))
    scale = el.find("Scale")
    if scale is not None:
        shape.scale = _read_vector(scale)
    te_el = el.find("TextureEntry")
    if te_el is not None:
        te = TextureEntry(
            default_texture=UUID(te_el.get("default")),
            default_material=_opt_attr_uuid(te_el, "material"),
        )
        for face in te_el.findall("Face"):
            te.faces[int(face.get("index"))] = TextureFace(
                UUID(face.get("texture")), _opt_attr_uuid(face, "material")
            )
        shape.texture_entry = te
    shape.sculpt_texture = _opt_uuid(el, "SculptTexture")
    shape.sculpt_type = int(_child_text(el, "SculptType", "0") or 0)
    mats = el.find("RenderMaterials")
    if mats is not None:
        for mat in mats.findall("Material"):
            shape.render_materials[UUID(mat.get("id"))] = RenderMaterial(
                _opt_attr_uuid(mat, "normal"), _opt_attr_uuid(mat, "specular")
            )
    return shape


def _read_item(el: ET.Element) -> TaskItem:
    return TaskItem(
        item_id=UUID(el.get("ItemID")),
        asset_id=UUID(el.get("AssetID")),
        asset_type=AssetType.coerce(int(el.get("Type", "-1"))),
        name=el.get("Name", ""),
        description=el.get("Description", ""),
        inv_type=int(el.get("InvType", "0")),
        owner_id=UUID(el.get("OwnerID")),
        creator_id=UUID(el.get("CreatorID")),
        last_owner_id=UUID(el.get("LastOwnerID", el.get("OwnerID"))),
        base_mask=int(el.get("BaseMask")),
        owner_mask=int(el.get("OwnerMask")),
        next_owner_mask=int(el.get("NextOwnerMask")),
        coalesced=el.get("Coalesced", "False") == "True",
    )


def _read_part(el: ET.Element) -> ScenePart:
    part = ScenePart(
        part_id=UUID(_child_text(el, "UUID")),
        name=_child_text(el, "Name", ""),
        description=_child_text(el, "Description", ""),
        creator_id=UUID(_child_text(el, "CreatorID")),
        owner_id=UUID(_child_text(el, "OwnerID")),
    )
    part.last_owner_id = UUID(_child_text(el, "LastOwnerID", str(part.owner_id)))
    offset = el.find("OffsetPosition")
    if offset is not None:
        part.offset_position = _read_vector(offset)
    _read_masks(el.find("Permissions"), part)
    shape = el.find("Shape")
    if shape is not None:
        part.shape = _read_shape(shape)
    part.sound_id = _opt_uuid(el, "Sound")
    part.collision_sound_id = _opt_uuid(el, "CollisionSound")
    inv = el.find("TaskInventory")
    if inv is not None:
        part.inventory = [_read_item(item) for item in inv.findall("Item")]
    return part


def _read_group(root: ET.Element) -> SceneObject:
    if root.tag != GROUP_TAG:
        raise decode_error(f"Expected <{GROUP_TAG}>, found <{root.tag}>")
    try:
        parts = [_read_part(p) for p in root.findall("Part")]
        if not parts:
            raise decode_error("Object has no parts")
        obj = SceneObject(parts=parts)
        pos = root.find("Position")
        if pos is not None:
            obj.position = _read_vector(pos)
        rot = root.find("Rotation")
        if rot is not None:
            obj.rotation = Quaternion(
                float(rot.get("x", 0)),
                float(rot.get("y", 0)),
                float(rot.get("z", 0)),
                float(rot.get("w", 1)),
            )
        obj.is_attachment = _child_text(root, "IsAttachment", "False") == "True"
    except (ValueError, TypeError) as e:
        # UUID(None) raises TypeError; bad numbers and ids raise ValueError
        raise decode_error(f"Invalid object field: {e}") from e
    return obj


def deserialize_object(data: Union[bytes, str]) -> SceneObject:
    """Parse a single object; raises ``EntryDecodeError`` on any defect."""
    return _read_group(_parse_root(data))


def deserialize_coalesced(data: Union[bytes, str]) -> Tuple[CoalescedObject, int]:
    """Parse a coalesced container.

    Members that fail to decode are skipped; the second element of the
    result is how many were skipped.
    """
    root = _parse_root(data)
    if root.tag != COALESCED_TAG:
        raise decode_error(f"Expected <{COALESCED_TAG}>, found <{root.tag}>")
    coalesced = CoalescedObject()
    skipped = 0
    for member in root.findall("Member"):
        try:
            group = _child(member, GROUP_TAG)
            obj = _read_group(group)
            perms = ItemPermissions()
            _read_masks(member.find("ItemPermissions"), perms)
        except (EntryDecodeError, ValueError):
            skipped += 1
            continue
        coalesced.objects.append(obj)
        coalesced.permissions.append(perms)
    return coalesced, skipped


def is_coalesced(data: Union[bytes, str]) -> bool:
    """Cheap sniff of the root tag without a full parse."""
    head = data[:512]
    if isinstance(head, bytes):
        head = head.decode("utf-8", errors="replace")
    return f"<{COALESCED_TAG}" in head


def decode_object_asset(
    data: Union[bytes, str],
) -> Tuple[Union[SceneObject, CoalescedObject], int]:
    """Decode an object asset payload, whichever of the two forms it has."""
    if is_coalesced(data):
        return deserialize_coalesced(data)
    return deserialize_object(data), 0


def member_objects(decoded: Union[SceneObject, CoalescedObject]) -> List[SceneObject]:
    if isinstance(decoded, CoalescedObject):
        return list(decoded.objects)
    return [decoded]
