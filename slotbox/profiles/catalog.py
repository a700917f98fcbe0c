"""
Built-in profile catalog.

The catalog is a fixed registry: profile id -> ProfileDefinition. Listing
order is the declaration order below. Expansion rules come from each
profile's ``requires`` list and are not user-extensible at runtime.
"""

from slotbox.profiles.models import (
    EnvStep,
    PackageInstallStep,
    ProfileDefinition,
    RuntimeVersionSpec,
    ScriptStep,
)
from slotbox.utils.errors import UnknownProfileError

_CORE = ["core"]
_CORE_BUILD = ["core", "build-tools"]

PROFILES: tuple[ProfileDefinition, ...] = (
    ProfileDefinition(
        name="core",
        description="Core Development Utilities (compilers, VCS, shell tools)",
        packages=[
            "gcc", "g++", "make", "git", "pkg-config",
            "libssl-dev", "libffi-dev", "zlib1g-dev", "tmux",
        ],
    ),
    ProfileDefinition(
        name="build-tools",
        description="Build Tools (CMake, autotools, Ninja)",
        packages=["cmake", "ninja-build", "autoconf", "automake", "libtool"],
    ),
    ProfileDefinition(
        name="shell",
        description="Optional Shell Tools (SSH, man, rsync, file)",
        packages=["rsync", "openssh-client", "man-db", "gnupg2", "aggregate", "file"],
    ),
    ProfileDefinition(
        name="networking",
        description="Network Tools (IP stack, DNS, route tools)",
        packages=["iptables", "ipset", "iproute2", "dnsutils"],
    ),
    ProfileDefinition(
        name="c",
        description="C/C++ Development (debuggers, analyzers, Boost, ncurses, cmocka)",
        requires=_CORE_BUILD,
        packages=[
            "gdb", "valgrind", "clang", "clang-format", "clang-tidy", "cppcheck",
            "doxygen", "libboost-all-dev", "libcmocka-dev", "libcmocka0", "lcov",
            "libncurses5-dev", "libncursesw5-dev",
        ],
    ),
    ProfileDefinition(
        name="openwrt",
        description="OpenWRT Development (cross toolchain, QEMU, distro tools)",
        requires=_CORE_BUILD,
        packages=[
            "rsync", "libncurses5-dev", "zlib1g-dev", "gawk", "gettext", "xsltproc",
            "libelf-dev", "ccache", "subversion", "swig", "time", "qemu-system-arm",
            "qemu-system-aarch64", "qemu-system-mips", "qemu-system-x86", "qemu-utils",
        ],
    ),
    ProfileDefinition(
        name="rust",
        description="Rust Development (installed via rustup)",
        kind="scripted",
        requires=_CORE,
        steps=[
            ScriptStep(
                user="${USER}",
                commands=["curl --proto '=https' --tlsv1.2 -sSf https://sh.rustup.rs | sh -s -- -y"],
            ),
            EnvStep(values={"PATH": "/home/${USER}/.cargo/bin:$PATH"}),
        ],
    ),
    ProfileDefinition(
        name="python",
        description="Python Development (managed via uv)",
        kind="scripted",
        requires=_CORE,
        steps=[
            ScriptStep(
                user="${USER}",
                commands=["curl -LsSf https://astral.sh/uv/install.sh | sh"],
            ),
            EnvStep(values={"PATH": "/home/${USER}/.local/bin:$PATH"}),
        ],
    ),
    ProfileDefinition(
        name="go",
        description="Go Development (installed from upstream archive)",
        kind="versioned",
        requires=_CORE,
        version=RuntimeVersionSpec(
            tool="go",
            version_files=[".go-version"],
            manifest="go_mod",
            default="1.21.0",
        ),
        steps=[
            ScriptStep(
                commands=[
                    "wget -O go.tar.gz https://golang.org/dl/go${VERSION}.linux-amd64.tar.gz && "
                    "tar -C /usr/local -xzf go.tar.gz && rm go.tar.gz"
                ],
            ),
            EnvStep(values={"PATH": "/usr/local/go/bin:$PATH"}),
        ],
    ),
    ProfileDefinition(
        name="javascript",
        description="JavaScript/TypeScript (Node installed via nvm)",
        kind="versioned",
        requires=_CORE,
        version=RuntimeVersionSpec(
            tool="node",
            version_files=[".nvmrc", ".node-version"],
            manifest="package_json",
            default="22",
            pattern=r"^[0-9]+(\.[0-9]+){0,2}$",
        ),
        steps=[
            EnvStep(values={"NVM_DIR": "/home/${USER}/.nvm"}),
            ScriptStep(
                user="${USER}",
                commands=[
                    "curl -o- https://raw.githubusercontent.com/nvm-sh/nvm/v0.39.3/install.sh | bash",
                    'bash -c ". $NVM_DIR/nvm.sh && nvm install ${VERSION} && nvm alias default ${VERSION}"',
                    'bash -c ". $NVM_DIR/nvm.sh && npm install -g typescript eslint prettier yarn pnpm"',
                ],
            ),
        ],
    ),
    ProfileDefinition(
        name="java",
        description="Java Development (OpenJDK 17, Maven, Gradle, Ant)",
        requires=_CORE,
        packages=["openjdk-17-jdk", "maven", "gradle", "ant"],
    ),
    ProfileDefinition(
        name="ruby",
        description="Ruby Development (Ruby via mise with auto-detection, gems, native deps)",
        kind="versioned",
        requires=_CORE,
        version=RuntimeVersionSpec(
            tool="ruby",
            version_files=[".ruby-version"],
            manifest="gemfile",
            default="3.4.5",
        ),
        packages=[
            "autoconf", "bison", "build-essential", "libssl-dev", "libyaml-dev",
            "libreadline-dev", "zlib1g-dev", "libncurses5-dev", "libffi-dev", "libgdbm-dev",
            "libdb-dev", "libsqlite3-dev", "libxml2-dev", "libxslt1-dev", "libcurl4-openssl-dev",
        ],
        steps=[
            ScriptStep(
                user="${USER}",
                comment="Install mise and Ruby ${VERSION}",
                commands=[
                    "curl https://mise.run | sh && "
                    "~/.local/bin/mise settings set idiomatic_version_file_enable_tools ruby && "
                    "~/.local/bin/mise settings set trusted_config_paths /workspace && "
                    "~/.local/bin/mise use --global ruby@${VERSION} && "
                    "~/.local/bin/mise exec -- gem install bundler --no-document && "
                    "echo 'eval \"$(~/.local/bin/mise activate bash)\"' >> ~/.bashrc",
                ],
            ),
            EnvStep(
                values={
                    "PATH": "/home/${USER}/.local/bin:/home/${USER}/.local/share/mise/shims:$PATH",
                    "MISE_DATA_DIR": "/home/${USER}/.local/share/mise",
                    "GEM_HOME": "/home/${USER}/.gem",
                }
            ),
        ],
    ),
    ProfileDefinition(
        name="php",
        description="PHP Development (PHP + extensions + Composer)",
        requires=_CORE,
        packages=[
            "php", "php-cli", "php-fpm", "php-mysql", "php-pgsql", "php-sqlite3",
            "php-curl", "php-gd", "php-mbstring", "php-xml", "php-zip", "composer",
        ],
    ),
    ProfileDefinition(
        name="database",
        description="Database Tools (clients for major databases)",
        requires=_CORE,
        packages=["postgresql-client", "default-mysql-client", "sqlite3", "redis-tools"],
    ),
    ProfileDefinition(
        name="devops",
        description="DevOps Tools (Docker, Kubernetes, Terraform, etc.)",
        kind="scripted",
        requires=_CORE,
        packages=["ca-certificates", "curl", "gnupg", "lsb-release", "wget", "ansible"],
        steps=[
            ScriptStep(
                comment="Add Docker, Kubernetes, Helm and HashiCorp apt repositories",
                commands=[
                    "install -m 0755 -d /etc/apt/keyrings && "
                    "curl -fsSL https://download.docker.com/linux/debian/gpg | "
                    "gpg --dearmor -o /etc/apt/keyrings/docker.gpg && "
                    'echo "deb [signed-by=/etc/apt/keyrings/docker.gpg] '
                    "https://download.docker.com/linux/debian "
                    '$(. /etc/os-release && echo $VERSION_CODENAME) stable" '
                    "> /etc/apt/sources.list.d/docker.list",
                    "curl -fsSL https://pkgs.k8s.io/core:/stable:/v1.33/deb/Release.key | "
                    "gpg --dearmor -o /etc/apt/keyrings/kubernetes-apt-keyring.gpg && "
                    "echo 'deb [signed-by=/etc/apt/keyrings/kubernetes-apt-keyring.gpg] "
                    "https://pkgs.k8s.io/core:/stable:/v1.33/deb/ /' "
                    "> /etc/apt/sources.list.d/kubernetes.list",
                    "curl -fsSL https://baltocdn.com/helm/signing.asc | "
                    "gpg --dearmor -o /usr/share/keyrings/helm.gpg && "
                    'echo "deb [signed-by=/usr/share/keyrings/helm.gpg] '
                    'https://baltocdn.com/helm/stable/debian/ all main" '
                    "> /etc/apt/sources.list.d/helm-stable-debian.list",
                    "wget -O - https://apt.releases.hashicorp.com/gpg | "
                    "gpg --dearmor -o /usr/share/keyrings/hashicorp-archive-keyring.gpg && "
                    'echo "deb [signed-by=/usr/share/keyrings/hashicorp-archive-keyring.gpg] '
                    'https://apt.releases.hashicorp.com $(lsb_release -cs) main" '
                    "> /etc/apt/sources.list.d/hashicorp.list",
                ],
            ),
            PackageInstallStep(
                packages=[
                    "docker-ce", "docker-ce-cli", "containerd.io", "docker-buildx-plugin",
                    "docker-compose-plugin", "kubectl", "helm", "terraform",
                ]
            ),
        ],
    ),
    ProfileDefinition(
        name="web",
        description="Web Dev Tools (nginx, HTTP test clients)",
        requires=_CORE,
        packages=["nginx", "apache2-utils", "httpie"],
    ),
    ProfileDefinition(
        name="embedded",
        description="Embedded Dev (ARM toolchain, serial debuggers)",
        requires=_CORE,
        packages=["gcc-arm-none-eabi", "gdb-multiarch", "openocd", "picocom", "minicom", "screen"],
    ),
    ProfileDefinition(
        name="datascience",
        description="Data Science (Python, Jupyter, R)",
        requires=_CORE,
        packages=["r-base"],
    ),
    ProfileDefinition(
        name="security",
        description="Security Tools (scanners, crackers, packet tools)",
        requires=_CORE,
        packages=[
            "nmap", "tcpdump", "wireshark-common", "netcat-openbsd", "john", "hashcat", "hydra",
        ],
    ),
    ProfileDefinition(
        name="ml",
        description="Machine Learning (build layer only; Python via uv)",
        requires=_CORE_BUILD,
    ),
)


class ProfileCatalog:
    """Read-only registry of known profiles."""

    def __init__(self, profiles: tuple[ProfileDefinition, ...] = PROFILES) -> None:
        self._profiles: dict[str, ProfileDefinition] = {p.name: p for p in profiles}

    def exists(self, profile_id: str) -> bool:
        return profile_id in self._profiles

    def get(self, profile_id: str) -> ProfileDefinition:
        """
        Get a profile definition.

        Raises:
            UnknownProfileError: If the id is not in the catalog
        """
        if profile_id not in self._profiles:
            raise UnknownProfileError([profile_id])
        return self._profiles[profile_id]

    def all_ids(self) -> list[str]:
        """All profile ids in declaration order (for listing, not build order)."""
        return list(self._profiles)

    def packages_for(self, profile_id: str) -> list[str]:
        """
        Get the apt packages a profile installs.

        Returns:
            Package names in declared order; empty for unknown ids and for
            profiles installed purely through their own procedure
        """
        profile = self._profiles.get(profile_id)
        return list(profile.packages) if profile else []

    def describe(self, profile_id: str) -> str:
        profile = self._profiles.get(profile_id)
        return profile.description if profile else ""

    def expand(self, profile_id: str) -> list[str]:
        """
        Expand a profile into its prerequisites followed by itself.

        Unknown ids expand to themselves; callers validate existence first.

        Example:
            >>> ProfileCatalog().expand("c")
            ['core', 'build-tools', 'c']
        """
        profile = self._profiles.get(profile_id)
        if profile is None:
            return [profile_id]

        expanded: list[str] = []
        for required in profile.requires:
            for item in self.expand(required):
                if item not in expanded:
                    expanded.append(item)
        if profile_id not in expanded:
            expanded.append(profile_id)
        return expanded

    def validate(self, profile_ids: list[str]) -> None:
        """
        Check that every id is known.

        Raises:
            UnknownProfileError: Naming every unknown id, so nothing is applied
        """
        unknown = [p for p in profile_ids if p not in self._profiles]
        if unknown:
            raise UnknownProfileError(unknown)
