"""
Dockerfile generator from build steps.

Serializes the structured steps produced by profiles into a Dockerfile, and
supplies the helper scripts copied into the build context:
- A base section (system packages, container user, Node.js, assistant CLI)
  that does not depend on the selected profiles, for layer caching
- One section per profile, in plan order
- A final section for extra packages from the [packages] selection
- An entrypoint that applies the slot's firewall allowlist, then drops to
  the container user
"""

from slotbox.profiles.models import BuildStep, EnvStep, PackageInstallStep, ScriptStep

# Bump when generated output changes in a way the fingerprint must see
TEMPLATE_REVISION = "3"

BASE_PACKAGES = [
    "bash",
    "ca-certificates",
    "curl",
    "dnsutils",
    "git",
    "gnupg",
    "iproute2",
    "ipset",
    "iptables",
    "jq",
    "less",
    "procps",
    "sudo",
    "unzip",
    "wget",
]

ENTRYPOINT_SCRIPT = r"""#!/bin/bash
set -e

ENABLE_SUDO=false
DISABLE_FIREWALL=false
args=()
for arg in "$@"; do
    case "$arg" in
        --enable-sudo) ENABLE_SUDO=true ;;
        --disable-firewall) DISABLE_FIREWALL=true ;;
        *) args+=("$arg") ;;
    esac
done

USER_NAME="${SLOTBOX_USER:-claude}"
ALLOWLIST="/home/${USER_NAME}/.slotbox/slots/${SLOTBOX_SLOT_NAME}/allowlist"

if [ "$DISABLE_FIREWALL" != "true" ] && [ -n "$SLOTBOX_SLOT_NAME" ] && [ -f "$ALLOWLIST" ]; then
    /usr/local/bin/slotbox-firewall "$ALLOWLIST" || echo "slotbox: firewall setup failed" >&2
fi

if [ "$ENABLE_SUDO" = "true" ]; then
    echo "${USER_NAME} ALL=(ALL) NOPASSWD:ALL" > /etc/sudoers.d/slotbox
    chmod 0440 /etc/sudoers.d/slotbox
else
    rm -f /etc/sudoers.d/slotbox
fi

if [ "${args[0]}" = "shell" ]; then
    exec runuser -u "$USER_NAME" -- bash -l "${args[@]:1}"
fi
exec runuser -u "$USER_NAME" -- bash -lc 'claude "$@"' claude "${args[@]}"
"""

FIREWALL_SCRIPT = r"""#!/bin/bash
set -e

ipset create slotbox-allowed hash:ip -exist
while IFS= read -r line || [ -n "$line" ]; do
    domain="${line%%#*}"
    domain="$(echo "$domain" | xargs)"
    [ -z "$domain" ] && continue
    for ip in $(dig +short A "$domain" | grep -E '^[0-9.]+$'); do
        ipset add slotbox-allowed "$ip" -exist
    done
done < "$1"

iptables -A OUTPUT -o lo -j ACCEPT
iptables -A OUTPUT -p udp --dport 53 -j ACCEPT
iptables -A OUTPUT -p tcp --dport 53 -j ACCEPT
iptables -A OUTPUT -m state --state ESTABLISHED,RELATED -j ACCEPT
iptables -A OUTPUT -m set --match-set slotbox-allowed dst -j ACCEPT
iptables -P OUTPUT DROP
"""


class DockerfileGenerator:
    """Generates Dockerfiles from profile build steps."""

    def __init__(self, base_image: str = "debian:bookworm", user: str = "claude") -> None:
        """
        Initialize Dockerfile generator.

        Args:
            base_image: Base Docker image to use
            user: Unprivileged container user that owns the home directory
        """
        self.base_image = base_image
        self.user = user

    def generate(
        self,
        profile_steps: list[tuple[str, list[BuildStep]]],
        extra_packages: list[str] | None = None,
    ) -> str:
        """
        Generate complete Dockerfile.

        Args:
            profile_steps: (profile name, steps) pairs in build order
            extra_packages: Additional apt packages installed last

        Returns:
            Complete Dockerfile as string
        """
        lines: list[str] = [f"FROM {self.base_image}", ""]
        lines.extend(self._base_section())

        for profile_name, steps in profile_steps:
            if not steps:
                continue
            lines.append(f"# Profile: {profile_name}")
            for step in steps:
                lines.extend(self.render_step(step))
            lines.append("")

        if extra_packages:
            lines.append("# Extra packages")
            lines.extend(self.render_step(PackageInstallStep(packages=extra_packages)))
            lines.append("")

        lines.extend(
            [
                "COPY entrypoint.sh /usr/local/bin/slotbox-entrypoint",
                "COPY firewall.sh /usr/local/bin/slotbox-firewall",
                "RUN chmod 0755 /usr/local/bin/slotbox-entrypoint /usr/local/bin/slotbox-firewall",
                "",
                f"ENV SLOTBOX_USER={self.user}",
                "WORKDIR /workspace",
                'ENTRYPOINT ["/usr/local/bin/slotbox-entrypoint"]',
            ]
        )

        return "\n".join(lines) + "\n"

    def context_files(self, dockerfile: str) -> dict[str, str]:
        """
        Files to place in the build context.

        Args:
            dockerfile: Output of generate()

        Returns:
            Mapping of file name to content
        """
        return {
            "Dockerfile": dockerfile,
            "entrypoint.sh": ENTRYPOINT_SCRIPT,
            "firewall.sh": FIREWALL_SCRIPT,
        }

    def render_step(self, step: BuildStep) -> list[str]:
        """
        Serialize one build step to Dockerfile lines.

        Args:
            step: Build step

        Returns:
            List of Dockerfile lines
        """
        if isinstance(step, PackageInstallStep):
            return self._apt_install(step.packages)

        if isinstance(step, EnvStep):
            return [f'ENV {key}="{value}"' for key, value in step.values.items()]

        if isinstance(step, ScriptStep):
            lines: list[str] = []
            if step.comment:
                lines.append(f"# {step.comment}")
            if step.user:
                lines.extend([f"USER {step.user}", f"WORKDIR /home/{step.user}"])
            lines.extend(f"RUN {command}" for command in step.commands)
            if step.user:
                lines.extend(["USER root", "WORKDIR /"])
            return lines

        raise TypeError(f"Unsupported build step: {step!r}")

    def _apt_install(self, packages: list[str]) -> list[str]:
        lines = [
            "RUN apt-get update && \\",
            "    apt-get install -y --no-install-recommends \\",
        ]
        for package in packages:
            lines.append(f"    {package} \\")
        lines.extend(
            [
                "    && apt-get clean && \\",
                "    rm -rf /var/lib/apt/lists/*",
            ]
        )
        return lines

    def _base_section(self) -> list[str]:
        """System packages, container user, Node.js and the assistant CLI."""
        lines: list[str] = [
            "ARG USER_ID=1000",
            "ARG GROUP_ID=1000",
            f"ARG USERNAME={self.user}",
            "ARG NODE_VERSION=22",
            "ARG DELTA_VERSION=0.17.0",
            "",
            "# Base system packages",
        ]
        lines.extend(self._apt_install(BASE_PACKAGES))
        lines.extend(
            [
                "",
                "# Create the container user matching the host uid/gid",
                'RUN (getent group "$GROUP_ID" || groupadd -g "$GROUP_ID" "$USERNAME") && \\',
                '    useradd -m -u "$USER_ID" -g "$GROUP_ID" -s /bin/bash "$USERNAME"',
                "",
                "# Node.js (required by the assistant CLI) and git-delta",
                "RUN mkdir -p /etc/apt/keyrings && \\",
                "    curl -fsSL https://deb.nodesource.com/gpgkey/nodesource-repo.gpg.key | \\",
                "    gpg --dearmor -o /etc/apt/keyrings/nodesource.gpg && \\",
                '    echo "deb [signed-by=/etc/apt/keyrings/nodesource.gpg] '
                'https://deb.nodesource.com/node_${NODE_VERSION}.x nodistro main" \\',
                "    > /etc/apt/sources.list.d/nodesource.list && \\",
                "    apt-get update && apt-get install -y --no-install-recommends nodejs && \\",
                "    rm -rf /var/lib/apt/lists/*",
                "RUN ARCH=$(dpkg --print-architecture) && \\",
                "    wget -q https://github.com/dandavison/delta/releases/download/"
                "${DELTA_VERSION}/git-delta_${DELTA_VERSION}_${ARCH}.deb && \\",
                "    dpkg -i git-delta_${DELTA_VERSION}_${ARCH}.deb && \\",
                "    rm git-delta_${DELTA_VERSION}_${ARCH}.deb",
                "",
                "# Assistant CLI, installed for the container user",
                "ARG REBUILD_TIMESTAMP=",
                f'ENV NPM_CONFIG_PREFIX="/home/{self.user}/.npm-global"',
                f'ENV PATH="/home/{self.user}/.npm-global/bin:/home/{self.user}/.local/bin:$PATH"',
                f"USER {self.user}",
                'RUN echo "build ${REBUILD_TIMESTAMP}" > /dev/null && \\',
                "    npm install -g @anthropic-ai/claude-code",
                "USER root",
                "",
            ]
        )
        return lines
