from __future__ import annotations

from rvtools_ingest.models import DatasetMetadata, NormalizedDataset, VirtualMachine
from rvtools_ingest.services.identity import (
    ByLocation,
    ByUuid,
    fingerprints_match,
    get_environment_fingerprint,
    get_environment_metadata,
    get_short_fingerprint,
    get_vm_identifier,
    parse_vm_identifier,
    vm_identity,
)

"""Unit tests for VM identity and environment fingerprinting."""


def test_identifier_with_uuid():
    vm = VirtualMachine("web01", uuid="uuid-1", datacenter="DC1", cluster="C1")
    assert vm_identity(vm) == ByUuid("web01", "uuid-1")
    assert get_vm_identifier(vm) == "web01::uuid-1"


def test_identifier_without_uuid_uses_location():
    vm = VirtualMachine("web01", datacenter="DC1", cluster="C1")
    assert vm_identity(vm) == ByLocation("web01", "DC1", "C1")
    assert get_vm_identifier(vm) == "web01::DC1::C1"


def test_parse_identifier_variants():
    assert parse_vm_identifier("a::u") == ByUuid("a", "u")
    assert parse_vm_identifier("a::dc::c") == ByLocation("a", "dc", "c")
    assert parse_vm_identifier("plain") == ByLocation("plain", "", "")


def test_names_containing_separator_round_trip():
    vm = VirtualMachine("odd::name", uuid="u:1")
    identifier = get_vm_identifier(vm)
    assert parse_vm_identifier(identifier) == ByUuid("odd::name", "u:1")


def test_environment_fingerprint(sample_dataset):
    fp = get_environment_fingerprint(sample_dataset)
    assert fp == "vcenter01.example.com::inst-0001::ClusterA,ClusterB"


def test_environment_fingerprint_without_source():
    ds = NormalizedDataset(metadata=DatasetMetadata(file_name="x.xlsx"))
    assert get_environment_fingerprint(ds) == "unknown::::"


def test_short_fingerprint_is_stable_hex():
    short = get_short_fingerprint("vcenter01::abc::C1")
    assert len(short) == 8
    assert short == get_short_fingerprint("vcenter01::abc::C1")
    assert all(ch in "0123456789ABCDEF" for ch in short)
    assert short != get_short_fingerprint("vcenter02::abc::C1")


def test_fingerprints_match():
    assert fingerprints_match("a", "a")
    assert not fingerprints_match("a", "b")
    assert not fingerprints_match("", "")
    assert not fingerprints_match(None, "a")


def test_environment_metadata(sample_dataset):
    meta = get_environment_metadata(sample_dataset)
    assert meta.server == "vcenter01.example.com"
    assert meta.cluster_count == 2
    # templates are not counted
    assert meta.vm_count == 3
    assert meta.short_fingerprint == get_short_fingerprint(meta.fingerprint)
