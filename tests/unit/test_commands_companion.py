from __future__ import annotations

from pathlib import Path

import pytest

from emuctl.commands import (
    grant_companion_api_permission,
    grant_host_permission,
    install_companion,
    reset_companion,
    uninstall_companion,
)
from emuctl.errors import DownloadError, PreconditionError, ToolError, UserAbort

ONLINE = "List of devices attached\nemulator-5554\tdevice\n"
ANKI = "com.ichi2.anki"
HOST = "com.demo.tauri_app"
DB_PERMISSION = "com.ichi2.anki.permission.READ_WRITE_DATABASE"


@pytest.fixture
def cached_apk(make_settings) -> Path:
    """Put the companion APK into the download cache."""
    settings = make_settings()
    settings.apk_cache_dir.mkdir(parents=True, exist_ok=True)
    apk = settings.apk_cache_dir / settings.companion.apk_filename()
    apk.write_bytes(b"PK\x03\x04")
    return apk


@pytest.fixture
def no_download(monkeypatch) -> list[tuple[str, Path]]:
    """Record download attempts instead of touching the network."""
    calls: list[tuple[str, Path]] = []

    def fake_download(url, dest, **_kw):
        calls.append((url, Path(dest)))
        Path(dest).write_bytes(b"PK\x03\x04")
        return Path(dest)

    monkeypatch.setattr("emuctl.commands.companion.download_file", fake_download)
    return calls


def _packages(*names: str) -> str:
    return "".join(f"package:{n}\n" for n in names)


# ----- install -----
def test_install_fresh(shell, make_ctx, cached_apk, no_download) -> None:
    """
    Not installed yet:
    - the cached APK is reused (no download)
    - install, storage grants and app-op are issued, then the app is launched
    """
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)

    install_companion(ctx)

    assert no_download == []
    assert shell.called("install", str(cached_apk))
    assert shell.called("appops", "set", ANKI, "MANAGE_EXTERNAL_STORAGE", "allow")
    assert shell.called("pm", "grant", ANKI, "android.permission.READ_EXTERNAL_STORAGE")
    assert shell.called("pm", "grant", ANKI, "android.permission.WRITE_EXTERNAL_STORAGE")
    assert shell.index("install", str(cached_apk)) < shell.index("monkey", "-p", ANKI)
    assert not shell.called("uninstall", ANKI)
    assert ctx.confirm.questions == []


def test_install_downloads_when_not_cached(shell, make_ctx, no_download) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)

    install_companion(ctx)

    url, dest = no_download[0]
    assert url == (
        "https://github.com/ankidroid/Anki-Android/releases/download/"
        "v2.22.3/AnkiDroid-2.22.3-full-universal.apk"
    )
    assert dest == ctx.settings.apk_cache_dir / "AnkiDroid-2.22.3.apk"
    assert "Downloaded AnkiDroid v2.22.3" in ctx.progress.messages("succeed")


def test_install_download_failure_propagates(shell, make_ctx, monkeypatch) -> None:
    def failing(url, dest, **_kw):
        raise DownloadError("Failed to download: 404")

    monkeypatch.setattr("emuctl.commands.companion.download_file", failing)
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)

    with pytest.raises(DownloadError):
        install_companion(ctx)
    assert not shell.called("install")
    assert "Failed to download AnkiDroid APK" in ctx.progress.messages("fail")


def test_install_declined_reinstall_aborts(shell, make_ctx, cached_apk) -> None:
    """Already installed and the user says no: UserAbort, nothing is touched."""
    ctx = make_ctx(answers=(False,))
    shell.on("devices", out=ONLINE)
    shell.on("pm", "list", "packages", out=_packages(ANKI))

    with pytest.raises(UserAbort):
        install_companion(ctx)

    assert ctx.confirm.questions == ["Do you want to reinstall?"]
    assert not shell.called("uninstall", ANKI)
    assert not shell.called("install", str(cached_apk))


def test_install_accepted_reinstall(shell, make_ctx, cached_apk) -> None:
    ctx = make_ctx(answers=(True,))
    shell.on("devices", out=ONLINE)
    shell.on("pm", "list", "packages", out=_packages(ANKI))

    install_companion(ctx)

    assert shell.index("uninstall", ANKI) < shell.index("install", str(cached_apk))


def test_forced_reinstall_skips_the_question(shell, make_ctx, cached_apk) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)
    shell.on("pm", "list", "packages", out=_packages(ANKI))

    install_companion(ctx, reinstall=True)

    assert ctx.confirm.questions == []
    assert shell.index("uninstall", ANKI) < shell.index("install", str(cached_apk))


def test_install_requires_running_emulator(shell, make_ctx) -> None:
    ctx = make_ctx()
    with pytest.raises(PreconditionError) as ei:
        install_companion(ctx)
    assert ei.value.remedy == "emu start"
    assert "No emulator found" in ctx.progress.messages("fail")


def test_install_failure_raises_tool_error(shell, make_ctx, cached_apk) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)
    shell.on("install", str(cached_apk), rc=1, err="INSTALL_FAILED_NO_MATCHING_ABIS")

    with pytest.raises(ToolError) as ei:
        install_companion(ctx)

    assert "INSTALL_FAILED_NO_MATCHING_ABIS" in ei.value.result.stderr
    assert not shell.called("monkey")


# ----- uninstall -----
def test_uninstall_when_not_installed_is_a_no_op(shell, make_ctx) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)

    uninstall_companion(ctx)

    assert not shell.called("uninstall")
    assert "AnkiDroid is not installed" in ctx.progress.messages("info")


def test_uninstall_installed(shell, make_ctx) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)
    shell.on("pm", "list", "packages", out=_packages(ANKI))

    uninstall_companion(ctx)

    assert shell.called("uninstall", ANKI)
    assert "\n✅ AnkiDroid has been uninstalled" in ctx.progress.messages("echo")


# ----- permissions -----
def test_api_permission_requires_host_app(shell, make_ctx) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)
    shell.on("pm", "list", "packages", out=_packages(ANKI))

    with pytest.raises(PreconditionError, match=HOST):
        grant_companion_api_permission(ctx)
    assert not shell.called("pm", "grant")


def test_api_permission_requires_companion(shell, make_ctx) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)
    shell.on("pm", "list", "packages", out=_packages(HOST))

    with pytest.raises(PreconditionError) as ei:
        grant_companion_api_permission(ctx)
    assert ei.value.remedy == "emu anki install"


def test_api_permission_granted(shell, make_ctx) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)
    shell.on("pm", "list", "packages", out=_packages(ANKI, HOST))

    grant_companion_api_permission(ctx)

    assert shell.called("pm", "grant", HOST, DB_PERMISSION)
    assert f"Granted {DB_PERMISSION} → {HOST}" in ctx.progress.messages("echo")


def test_host_permission_failure(shell, make_ctx) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)
    shell.on("pm", "grant", rc=255, err="Unknown package: com.demo.tauri_app")

    with pytest.raises(ToolError):
        grant_host_permission(ctx)


# ----- reset -----
def test_reset_wipes_reinstalls_and_regrants(shell, make_ctx, cached_apk) -> None:
    """uninstall -> clear data dirs -> install -> host grant, in that order."""
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)

    reset_companion(ctx)

    order = [
        shell.index("uninstall", ANKI),
        shell.index("rm", "-rf", "/sdcard/AnkiDroid"),
        shell.index("install", str(cached_apk)),
        shell.index("pm", "grant", HOST, DB_PERMISSION),
    ]
    assert order == sorted(order)
    for path in ctx.settings.companion.data_dirs:
        assert shell.called("rm", "-rf", path)
    assert ctx.confirm.questions == []


def test_reset_tolerates_missing_host_app(shell, make_ctx, cached_apk) -> None:
    ctx = make_ctx()
    shell.on("devices", out=ONLINE)
    shell.on("pm", "grant", HOST, rc=255, err="Unknown package")

    reset_companion(ctx)

    assert any(m.startswith("Host app permission not granted") for m in ctx.progress.messages("warn"))
