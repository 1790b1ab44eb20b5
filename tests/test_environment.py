import pytest

from stank_venv.catalog import Catalog, parse_catalog
from stank_venv.environments.environment import (
    add_role,
    add_set,
    create_environment,
    list_environments,
    load_environment,
    read_runtime_version,
    sanitize_env_name,
    validate_env_name,
)
from stank_venv.errors import (
    AlreadyExistsError,
    EnvironmentCreationError,
    InvalidNameError,
    NotFoundError,
)
from stank_venv.types import SetStatus

from conftest import make_venv


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("My Test Env!", "my-test-env"),
        ("  data_science  ", "data-science"),
        ("--a  b--", "a-b"),
        ("Ünïcode", "ncode"),
        ("x" * 80, "x" * 64),
    ],
)
def test_sanitize_env_name(raw, expected):
    assert sanitize_env_name(raw) == expected


@pytest.mark.parametrize("name", ["ab", "my-env", "env2", "9lives"])
def test_valid_names(name):
    assert validate_env_name(name) == name


@pytest.mark.parametrize(
    "name,reason",
    [
        ("", "empty"),
        ("a", "at least 2"),
        ("x" * 65, "exceed 64"),
        ("-env", "start with"),
        ("my_env", "only contain"),
        ("env-", "end with a dash"),
    ],
)
def test_invalid_names(name, reason):
    with pytest.raises(InvalidNameError) as exc:
        validate_env_name(name)
    assert reason in str(exc.value)


def test_read_runtime_version(tmp_path):
    (tmp_path / "pyvenv.cfg").write_text("home = /usr/bin\nversion_info = 3.12.1.final.0\n")
    assert read_runtime_version(tmp_path) == "3.12.1"
    assert read_runtime_version(tmp_path / "missing") == "unknown"


def test_load_and_list_environments(config):
    make_venv(config.venv_dir / "beta", "3.12.0")
    make_venv(config.venv_dir / "alpha")
    (config.venv_dir / "alpha" / "bin" / "jupyter").write_text("")
    (config.venv_dir / "not-a-venv").mkdir()

    rows = list_environments(config)

    assert [r.name for r in rows] == ["alpha", "beta"]
    assert rows[0].has_jupyter and not rows[1].has_jupyter
    assert rows[1].runtime_version == "3.12.0"
    assert rows[0].size_bytes > 0
    assert load_environment(config, "beta").runtime_version == "3.12.0"
    with pytest.raises(NotFoundError):
        load_environment(config, "not-a-venv")


def test_list_without_root(config):
    assert list_environments(config) == []


@pytest.mark.asyncio
async def test_create_with_set_preset(ctx, installer, runtime_factory):
    result = await create_environment(ctx, "demo-env", preset="jupyter")

    environment = result.environment
    assert runtime_factory.created == [ctx.config.venv_dir / "demo-env"]
    assert environment.runtime_version == "3.11.9"
    assert installer.calls == ["jupyterlab", "notebook", "ipykernel"]
    manifest = ctx.manifests.load(environment)
    assert manifest.installed_sets == ["jupyter"]
    assert manifest.runtime_version == "3.11.9"
    assert result.failed == 0


@pytest.mark.asyncio
async def test_create_with_data_science_preset(ctx, installer):
    result = await create_environment(ctx, "ds", preset="data_science")

    assert [s.set_id for s in result.set_outcomes] == ["jupyter", "data_science"]
    assert ctx.manifests.load(result.environment).installed_sets == ["jupyter", "data_science"]


@pytest.mark.asyncio
async def test_create_with_role_preset(ctx):
    result = await create_environment(ctx, "ml", preset="data_scientist")

    manifest = ctx.manifests.load(result.environment)
    assert manifest.installed_roles == ["data_scientist"]
    assert len(result.set_outcomes) == 4


@pytest.mark.asyncio
async def test_create_without_preset_initializes_manifest(ctx, installer):
    result = await create_environment(ctx, "bare")

    manifest = ctx.manifests.load(result.environment)
    assert manifest is not None
    assert manifest.installed_sets == []
    assert installer.calls == []


@pytest.mark.asyncio
async def test_existing_environment_is_refused(ctx, runtime_factory):
    make_venv(ctx.config.venv_dir / "taken")

    with pytest.raises(AlreadyExistsError):
        await create_environment(ctx, "taken")
    assert runtime_factory.created == []


@pytest.mark.asyncio
async def test_unknown_preset_creates_nothing(ctx, runtime_factory):
    with pytest.raises(NotFoundError):
        await create_environment(ctx, "demo", preset="astronaut")
    assert not (ctx.config.venv_dir / "demo").exists()


@pytest.mark.asyncio
async def test_invalid_name_creates_nothing(ctx, runtime_factory):
    with pytest.raises(InvalidNameError):
        await create_environment(ctx, "Bad Name")
    assert runtime_factory.created == []


@pytest.mark.asyncio
async def test_runtime_failure_leaves_no_manifest(ctx):
    async def failing_factory(path):
        raise EnvironmentCreationError("venv creation failed")

    ctx.runtime_factory = failing_factory

    with pytest.raises(EnvironmentCreationError):
        await create_environment(ctx, "demo", preset="jupyter")
    assert not (ctx.config.venv_dir / "demo" / "stank-manifest.json").exists()


@pytest.mark.asyncio
async def test_no_network_skips_installs(ctx, installer, output):
    async def offline():
        return False

    ctx.network_check = offline
    result = await create_environment(ctx, "offline", preset="jupyter")

    assert result.installs_skipped
    assert installer.calls == []
    assert "no network" in output.getvalue()
    assert ctx.manifests.load(result.environment).installed_sets == []


@pytest.mark.asyncio
async def test_pip_upgrade_failure_is_a_warning(ctx, output):
    async def pip_fails(runtime):
        return False

    ctx.pip_upgrader = pip_fails
    result = await create_environment(ctx, "demo")

    assert not result.pip_upgraded
    assert "pip upgrade failed" in output.getvalue()


@pytest.mark.asyncio
async def test_project_directory_is_created_and_linked(ctx):
    result = await create_environment(ctx, "proj", create_project=True)

    project = ctx.config.projects_dir / "proj"
    assert result.project_dir == project
    for subdir in ("notebooks", "data", "outputs", "scripts"):
        assert (project / subdir).is_dir()
    assert ctx.manifests.load(result.environment).project_path == str(project)


@pytest.mark.asyncio
async def test_existing_project_directory_is_preserved(ctx, output):
    project = ctx.config.projects_dir / "proj"
    (project / "notebooks").mkdir(parents=True)
    (project / "notebooks" / "work.ipynb").write_text("{}")

    await create_environment(ctx, "proj", create_project=True)

    assert (project / "notebooks" / "work.ipynb").read_text() == "{}"
    assert (project / "scripts").is_dir()
    assert "already exists" in output.getvalue()


@pytest.mark.asyncio
async def test_add_set_to_existing_environment(ctx, environment, installer):
    ctx.manifests.initialize(environment)

    outcome = await add_set(ctx, environment.name, "visualization")

    assert outcome.status == SetStatus.INSTALLED
    assert installer.calls == ["matplotlib", "seaborn", "plotly"]


@pytest.mark.asyncio
async def test_add_role_to_missing_environment(ctx):
    with pytest.raises(NotFoundError):
        await add_role(ctx, "ghost", "analyst")


@pytest.mark.asyncio
async def test_role_without_sets_is_not_a_preset(ctx, runtime_factory):
    ctx.catalog = Catalog(
        parse_catalog(
            {
                "package_sets": {"jupyter": {"name": "Jupyter", "packages": ["jupyterlab"]}},
                "job_roles": {"hollow": {"name": "Hollow", "sets": []}},
            }
        )
    )

    with pytest.raises(NotFoundError):
        await create_environment(ctx, "demo", preset="hollow")
    assert runtime_factory.created == []
    assert not (ctx.config.venv_dir / "demo").exists()
