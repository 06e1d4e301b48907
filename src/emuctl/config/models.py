from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

DEFAULT_JAVA_HOME = "/usr/lib/jvm/java-11-openjdk-amd64"


class AvdSettings(BaseModel):
    """Android Virtual Device definition and hardware tuning."""

    model_config = ConfigDict(frozen=True)

    name: str = "Pixel_7_API_35"  # AVD name passed to avdmanager/emulator
    device_id: str = "pixel_7"  # Hardware profile
    system_image: str = "system-images;android-35;google_apis;x86_64"  # sdkmanager package
    sdcard_size: str = "2048M"  # SD card size for `avdmanager create avd -c`
    ram_size: int = 4096  # RAM in MB, used for config.ini and `-memory`
    gpu_enabled: bool = True  # hw.gpu.enabled
    gpu_mode: str = "swiftshader_indirect"  # hw.gpu.mode and `-gpu`


class EmulatorSettings(BaseModel):
    """Runtime options of the emulator process."""

    model_config = ConfigDict(frozen=True)

    display: str = ":1"  # X display the emulator window is drawn on (viewed over VNC)
    vnc_port: int = 5901
    boot_check_interval: int = 2  # Seconds between boot polls
    boot_completed_timeout: int = 60  # Seconds to wait for sys.boot_completed=1
    no_audio: bool = True
    no_boot_anim: bool = True
    no_metrics: bool = True


class CompanionAppSettings(BaseModel):
    """The separately distributed app (AnkiDroid) managed on the emulator."""

    model_config = ConfigDict(frozen=True)

    version: str = "2.22.3"
    package: str = "com.ichi2.anki"
    apk_dir: str = "third-party-apks"  # Download cache, relative to project_root
    url_template: str = (
        "https://github.com/ankidroid/Anki-Android/releases/download/"
        "v{version}/AnkiDroid-{version}-full-universal.apk"
    )
    runtime_permissions: tuple[str, ...] = (
        "android.permission.READ_EXTERNAL_STORAGE",
        "android.permission.WRITE_EXTERNAL_STORAGE",
    )
    app_ops: tuple[str, ...] = ("MANAGE_EXTERNAL_STORAGE",)
    data_dirs: tuple[str, ...] = (
        "/sdcard/AnkiDroid",
        "/storage/emulated/0/AnkiDroid",
        "/sdcard/Android/data/com.ichi2.anki",
    )  # Wiped by `anki reset`

    def apk_url(self) -> str:
        return self.url_template.format(version=self.version)

    def apk_filename(self) -> str:
        return f"AnkiDroid-{self.version}.apk"


class HostAppSettings(BaseModel):
    """The app under development that reads the companion app's content provider."""

    model_config = ConfigDict(frozen=True)

    package: str = "com.demo.tauri_app"
    permission: str = "com.ichi2.anki.permission.READ_WRITE_DATABASE"


class Settings(BaseSettings):
    """
    Device configuration for the whole CLI invocation.

    Loads values from the following sources:
    - Environment variables (with prefix EMU_, plus ANDROID_HOME/ANDROID_SDK_ROOT/JAVA_HOME)
    - Initialization values (e.g., from YAML)
    - .env file
    - Secret files

    Instances are frozen: nothing mutates the configuration after load.
    """

    model_config = SettingsConfigDict(
        env_prefix="EMU_",
        env_nested_delimiter="__",
        populate_by_name=True,
        frozen=True,
    )

    avd: AvdSettings = Field(default_factory=AvdSettings)
    emulator: EmulatorSettings = Field(default_factory=EmulatorSettings)
    companion: CompanionAppSettings = Field(default_factory=CompanionAppSettings)
    host_app: HostAppSettings = Field(default_factory=HostAppSettings)

    boot_timeout: int = 120  # Seconds to wait for the device to be listed (EMU_BOOT_TIMEOUT)

    android_home: str | None = Field(
        default=None,
        validation_alias=AliasChoices("android_home", "ANDROID_HOME", "ANDROID_SDK_ROOT"),
    )
    java_home: str | None = Field(
        default=None, validation_alias=AliasChoices("java_home", "JAVA_HOME")
    )
    avd_home: Path = Field(default_factory=lambda: Path.home() / ".android" / "avd")
    project_root: Path = Field(default_factory=Path.cwd)

    @property
    def logs_dir(self) -> Path:
        return self.project_root / "logs"

    @property
    def apk_cache_dir(self) -> Path:
        return self.project_root / self.companion.apk_dir

    @property
    def avd_config_file(self) -> Path:
        return self.avd_home / f"{self.avd.name}.avd" / "config.ini"

    def java_home_or_default(self) -> str:
        return self.java_home or DEFAULT_JAVA_HOME

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,  # type: type[BaseSettings]
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Configure the order of configuration sources.

        Loading priority:
        1. Environment variables
        2. Initialization values (e.g., from YAML)
        3. .env file
        4. Secret files
        """
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)
