from __future__ import annotations

import os
import re
from pathlib import Path

import pytest

from gcs_deployer.config import ConfigStore, PersistedConfig, ServerSettings
from gcs_deployer.gcp_gcs import public_url
from gcs_deployer.orchestrator import Deployer, configure
from gcs_deployer.schemas import ConfigureRequest, DeployRequest


def _deployer(config_dir: Path, fake_spawner, fake_client, **stored: str) -> Deployer:
    store = ConfigStore(config_dir)
    if stored:
        store.save(PersistedConfig(**stored))
    return Deployer(
        store,
        settings=ServerSettings(config_dir=config_dir),
        spawner=fake_spawner,
        storage_factory=fake_client.factory,
    )


def test_configure_message_and_persistence(config_dir: Path) -> None:
    store = ConfigStore(config_dir)

    text = configure(store, ConfigureRequest(bucketName="b1", projectId="p1", subfolder="docs"))

    assert text == "Configuration saved for bucket 'b1' in project 'p1' with subfolder 'docs'."
    assert store.load() == PersistedConfig(bucket_name="b1", project_id="p1", subfolder="docs")


def test_configure_bucket_only_keeps_stored_project(config_dir: Path) -> None:
    store = ConfigStore(config_dir)
    store.save(PersistedConfig(project_id="p1"))

    text = configure(store, ConfigureRequest(bucketName="b2"))

    assert text == "Configuration saved for bucket 'b2'."
    assert store.load() == PersistedConfig(bucket_name="b2", project_id="p1")


@pytest.mark.asyncio
async def test_missing_config_reports_both_fields_without_uploading(
    config_dir: Path, fake_spawner, fake_client, site_dir: Path
) -> None:
    deployer = _deployer(config_dir, fake_spawner, fake_client)

    outcome = await deployer.deploy(DeployRequest(sourcePath=str(site_dir)))

    assert outcome.is_error
    assert "bucketName" in outcome.text
    assert "projectId" in outcome.text
    assert fake_client.uploads == []
    assert fake_client.projects == []
    assert fake_spawner.calls == []


@pytest.mark.asyncio
async def test_invalid_source_fails_before_identity_probe(
    config_dir: Path, fake_spawner, fake_client, tmp_path: Path
) -> None:
    deployer = _deployer(config_dir, fake_spawner, fake_client, bucket_name="b1", project_id="p1")

    outcome = await deployer.deploy(DeployRequest(sourcePath=str(tmp_path / "missing")))

    assert outcome.is_error
    assert outcome.text.startswith("Error deploying to GCS:")
    assert fake_spawner.calls == []
    assert fake_client.projects == []
    assert ConfigStore(config_dir).get_subfolder() is None


@pytest.mark.asyncio
@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="os.mkfifo 미지원 플랫폼")
async def test_fifo_source_is_rejected_without_side_effects(
    config_dir: Path, fake_spawner, fake_client, tmp_path: Path
) -> None:
    fifo = tmp_path / "pipe"
    os.mkfifo(fifo)
    deployer = _deployer(config_dir, fake_spawner, fake_client, bucket_name="b1", project_id="p1")

    outcome = await deployer.deploy(DeployRequest(sourcePath=str(fifo)))

    assert outcome.is_error
    assert outcome.text.startswith("Error deploying to GCS:")
    assert fake_spawner.calls == []
    assert fake_client.projects == []
    assert ConfigStore(config_dir).get_subfolder() is None


@pytest.mark.asyncio
async def test_directory_deploy_returns_preflight_and_urls(
    config_dir: Path, fake_spawner, fake_client, site_dir: Path
) -> None:
    deployer = _deployer(config_dir, fake_spawner, fake_client, bucket_name="b1", project_id="p1")

    outcome = await deployer.deploy(DeployRequest(sourcePath=str(site_dir), destinationPrefix="demo"))

    assert not outcome.is_error
    assert (
        f"Deploying '{site_dir}' to bucket 'b1' in project 'p1' using identity 'dev@example.com' "
        "(subfolder: 'demo')..."
    ) in outcome.text
    assert "Successfully deployed to GCS. Public URLs:" in outcome.text
    urls = outcome.text.split("Public URLs:\n", 1)[1].splitlines()
    assert sorted(fake_client.keys) == ["demo/a.txt", "demo/sub/b.txt"]
    assert urls == [public_url("b1", key) for key in fake_client.keys]
    assert fake_client.projects == ["p1"]


@pytest.mark.asyncio
async def test_generated_subfolder_is_reused_across_deploys(
    config_dir: Path, fake_spawner, fake_client, site_dir: Path
) -> None:
    deployer = _deployer(config_dir, fake_spawner, fake_client, bucket_name="b1", project_id="p1")

    await deployer.deploy(DeployRequest(sourcePath=str(site_dir / "a.txt")))
    await deployer.deploy(DeployRequest(sourcePath=str(site_dir / "a.txt")))

    first, second = fake_client.keys
    assert first == second
    assert re.match(r"^site-[0-9a-z]{6}/a\.txt$", first)


@pytest.mark.asyncio
async def test_identity_failure_does_not_block_deploy(
    config_dir: Path, fake_spawner, fake_client, site_dir: Path
) -> None:
    fake_spawner.respond("config", returncode=1)
    deployer = _deployer(config_dir, fake_spawner, fake_client, bucket_name="b1", project_id="p1")

    outcome = await deployer.deploy(DeployRequest(sourcePath=str(site_dir / "a.txt")))

    assert not outcome.is_error
    assert "unknown (could not determine identity)" in outcome.text


@pytest.mark.asyncio
async def test_missing_credentials_launch_login_and_ask_for_retry(
    config_dir: Path, fake_spawner, fake_client, site_dir: Path
) -> None:
    fake_client.upload_error_for = lambda key: RuntimeError(
        "Could not load the default credentials. Browse to https://cloud.google.com/docs/authentication"
    )
    deployer = _deployer(config_dir, fake_spawner, fake_client, bucket_name="b1", project_id="p1")

    outcome = await deployer.deploy(DeployRequest(sourcePath=str(site_dir)))

    assert outcome.is_error
    assert "try this request again" in outcome.text
    login_calls = fake_spawner.calls_for("auth")
    assert len(login_calls) == 1
    assert "--scopes=https://www.googleapis.com/auth/devstorage.full_control" in login_calls[0]
    assert fake_client.uploads == []


@pytest.mark.asyncio
async def test_credentials_error_from_client_construction_is_recovered(
    config_dir: Path, fake_spawner, fake_client, site_dir: Path
) -> None:
    from google.auth.exceptions import DefaultCredentialsError

    fake_client.construct_error = DefaultCredentialsError("Your default credentials were not found.")
    deployer = _deployer(config_dir, fake_spawner, fake_client, bucket_name="b1", project_id="p1")

    outcome = await deployer.deploy(DeployRequest(sourcePath=str(site_dir)))

    assert outcome.is_error
    assert len(fake_spawner.calls_for("auth")) == 1


@pytest.mark.asyncio
async def test_other_upload_error_is_reported_verbatim(
    config_dir: Path, fake_spawner, fake_client, site_dir: Path
) -> None:
    fake_client.upload_error_for = lambda key: RuntimeError("quota exceeded for bucket b1")
    deployer = _deployer(config_dir, fake_spawner, fake_client, bucket_name="b1", project_id="p1")

    outcome = await deployer.deploy(DeployRequest(sourcePath=str(site_dir)))

    assert outcome.is_error
    assert outcome.text == "Error deploying to GCS: quota exceeded for bucket b1"
    assert fake_spawner.calls_for("auth") == []
