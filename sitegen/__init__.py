import os
from pathlib import Path


def _load_dotenv_if_needed() -> None:
	# Tests stay offline: never pick up a developer's .env under pytest
	if os.getenv("PYTEST_CURRENT_TEST"):
		return
	env_path = Path(".env")
	if not env_path.is_file():
		return
	try:
		lines = env_path.read_text(encoding="utf-8").splitlines()
	except OSError:
		return
	for line in lines:
		s = line.strip()
		if s.startswith("export "):
			s = s[len("export "):].lstrip()
		if not s or s.startswith("#") or "=" not in s:
			continue
		key, val = (part.strip() for part in s.split("=", 1))
		if len(val) >= 2 and val[0] == val[-1] and val[0] in {'"', "'"}:
			val = val[1:-1]
		# Variables already in the environment win
		if key:
			os.environ.setdefault(key, val)


_load_dotenv_if_needed()
