import os

from bedrock_nbt.logger import logger
from bedrock_nbt.options import NbtOptions, Flavor, RootPolicy, Compression, DEFAULT_DEPTH_LIMIT
from bedrock_nbt.policy import reserve_recursion

class Config:
    def __init__(self):
        self._properties = {}

        self._default_values = {
            "flavor": "java",
            "root-policy": "named_compound_only",
            "depth-limit": str(DEFAULT_DEPTH_LIMIT),
            "preserve-order": "true",
            "approximate-float-equality": "false",
            "float-epsilon": "1e-6",
            "named-escapes": "true",
            "compression": "none",
            "allow-invalid-strings": "false",
            "crawl-workers": "4",
            "log-levels": "WARN,ERROR",
        }

    def load(self, filepath="nbt.properties"):
        """Reads `key=value` lines; a missing file leaves only the defaults."""
        self._properties.clear()
        if not os.path.exists(filepath):
            return

        with open(filepath, "r", encoding="utf-8") as file:
            for line in file:
                line = line.strip()
                if line and not line.startswith("#"):
                    key, _, value = line.partition("=")
                    self._properties[key.strip()] = value.strip()

    def save(self, filepath="nbt.properties"):
        with open(filepath, "w", encoding="utf-8") as f:
            for key, value in self._default_values.items():
                f.write(f"{key}={self._properties.get(key, value)}\n")

    def set(self, key, value):
        self._properties[key] = str(value)

    def get(self, key, default=None):
        if default is None:
            default = self._default_values.get(key)
        return self._properties.get(key, default)

    def get_bool(self, key) -> bool:
        value = self.get(key).lower()
        if value in ("true", "yes", "1"):
            return True
        if value in ("false", "no", "0"):
            return False
        raise ValueError(f"Invalid boolean for {key}: {value}")

    def get_int(self, key) -> int:
        try:
            return int(self.get(key))
        except ValueError:
            raise ValueError(f"Invalid integer for {key}: {self.get(key)}") from None

    def options(self) -> NbtOptions:
        depth_limit = self.get_int("depth-limit")
        if depth_limit < 1:
            raise ValueError(f"depth-limit must be positive, got {depth_limit}")
        reserve_recursion(depth_limit)
        return NbtOptions(
            flavor=Flavor(self.get("flavor").lower()),
            root_policy=RootPolicy(self.get("root-policy").lower()),
            depth_limit=depth_limit,
            preserve_order=self.get_bool("preserve-order"),
            approximate_float_equality=self.get_bool("approximate-float-equality"),
            float_epsilon=float(self.get("float-epsilon")),
            named_escapes=self.get_bool("named-escapes"),
            compression=Compression(self.get("compression").lower()),
            allow_invalid_strings=self.get_bool("allow-invalid-strings"),
        )

    def log_levels(self) -> tuple:
        return tuple(level.strip().upper() for level in self.get("log-levels").split(",") if level.strip())

    def apply_logging(self):
        """Sets the console levels of the package logger and all its sub-loggers."""
        logger.set_levels(*self.log_levels())

config = Config()
