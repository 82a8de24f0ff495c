"""Tests for CLI"""

import json

import pytest

from pacdep.cli.commands import options_from_args
from pacdep.cli.main import create_parser, main, validate_args
from pacdep.core.closure import CLASSIFIED, Classification
from pacdep.core.config import E_DATABASE, E_FILEREAD, E_NOPKG, E_OK, E_USAGE


def write_package(local_dir, name, reason=0, size=1024, depends=()):
    entry = local_dir / f"{name}-1.0-1"
    entry.mkdir(parents=True)
    content = f"%NAME%\n{name}\n\n%VERSION%\n1.0-1\n\n%SIZE%\n{size}\n\n%REASON%\n{reason}\n\n"
    if depends:
        content += "%DEPENDS%\n" + "\n".join(depends) + "\n\n"
    (entry / "desc").write_text(content)


@pytest.fixture
def pacman_conf(tmp_path):
    """A pacman.conf pointing at a small local database."""
    local = tmp_path / "db" / "local"
    write_package(local, "firefox", depends=["nss", "gtk3"], size=4096)
    write_package(local, "nss", reason=1, size=2048)
    write_package(local, "gtk3", reason=1, size=8192)
    write_package(local, "gimp", depends=["gtk3"])

    conf = tmp_path / "pacman.conf"
    conf.write_text(f"[options]\nDBPath = {tmp_path / 'db'}\n")
    return conf


class TestParser:
    """Tests for argument parser."""

    def test_version_flag(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(['--version'])

    def test_packages(self):
        args = create_parser().parse_args(['firefox', 'vim'])
        assert args.packages == ['firefox', 'vim']
        assert args.config == '/etc/pacman.conf'
        assert args.show_optional == 0
        assert args.reverse == 0

    def test_counted_flags(self):
        args = create_parser().parse_args(['-ppp', '-rr', 'firefox'])
        assert args.show_optional == 3
        assert args.reverse == 2

    def test_listing_flags(self):
        args = create_parser().parse_args(['-eEsSoOx', 'firefox'])
        assert args.list_exclusive and args.list_exclusive_explicit
        assert args.list_shared and args.list_shared_explicit
        assert args.list_optional and args.list_optional_explicit
        assert args.explicit

    def test_too_many_levels(self):
        parser = create_parser()
        assert validate_args(parser.parse_args(['-pppp', 'a'])) is not None
        assert validate_args(parser.parse_args(['-rrrr', 'a'])) is not None
        assert validate_args(parser.parse_args(['-ppp', '-rrr', 'a'])) is None


class TestOptionsFromArgs:
    """Tests for the analysis options built from arguments."""

    def test_listed(self):
        args = create_parser().parse_args(['-e', '-S', 'a'])
        options = options_from_args(args)
        assert options.listed == frozenset({
            Classification.EXCLUSIVE, Classification.SHARED_EXPLICIT,
        })

    def test_list_optional_implies_show_optional(self):
        options = options_from_args(create_parser().parse_args(['-o', 'a']))
        assert options.show_optional == 1
        options = options_from_args(create_parser().parse_args(['-O', '-pp', 'a']))
        assert options.show_optional == 2

    def test_reverse_lists_everything(self):
        options = options_from_args(create_parser().parse_args(['-r', 'a']))
        assert options.reverse == 1
        assert options.listed == frozenset(CLASSIFIED)

    def test_flags(self):
        args = create_parser().parse_args(['-x', '--from-sync', '--sort-size', 'a'])
        options = options_from_args(args)
        assert options.explicit
        assert options.from_sync
        assert options.sort_by_size


class TestMain:
    """Tests for the entry point."""

    def test_report(self, pacman_conf, capsys):
        assert main(['-c', str(pacman_conf), '--nocolor', '-e', '-s', 'firefox']) == E_OK
        out = capsys.readouterr().out.splitlines()
        assert out[0].startswith("firefox")
        assert out[1].startswith("Exclusive dependencies:")
        assert out[2].split() == ["nss", "2.00", "KiB"]
        assert out[3].startswith("Shared dependencies:")
        assert out[4].split() == ["gtk3", "8.00", "KiB"]
        assert out[5].startswith("Total dependencies:")

    def test_one_report_per_package(self, pacman_conf, capsys):
        assert main(['-c', str(pacman_conf), 'firefox', 'gimp']) == E_OK
        out = capsys.readouterr().out.splitlines()
        assert "" in out
        assert out[out.index("") + 1].startswith("gimp")

    def test_together(self, pacman_conf, capsys):
        assert main(['-c', str(pacman_conf), '--together', 'firefox', 'gimp']) == E_OK
        out = capsys.readouterr().out
        assert "Packages:" in out
        assert "\n\n" not in out

    def test_reverse(self, pacman_conf, capsys):
        assert main(['-c', str(pacman_conf), '-r', 'gtk3']) == E_OK
        out = capsys.readouterr().out.splitlines()
        assert out[1].startswith("Required by:")
        assert [line.split()[0] for line in out[2:4]] == ["firefox", "gimp"]

    def test_json(self, pacman_conf, capsys):
        assert main(['-c', str(pacman_conf), '--json', 'firefox']) == E_OK
        data = json.loads(capsys.readouterr().out)
        assert data[0]["packages"][0]["name"] == "firefox"
        assert data[0]["categories"]["shared"]["size"] == 8192

    def test_package_not_found(self, pacman_conf, capsys):
        assert main(['-c', str(pacman_conf), 'nothing', 'firefox']) == E_OK
        captured = capsys.readouterr()
        assert "Package not found: nothing" in captured.err
        assert captured.out.startswith("firefox")

    def test_nothing_found(self, pacman_conf, capsys):
        assert main(['-c', str(pacman_conf), 'nothing']) == E_NOPKG
        assert "Package not found: nothing" in capsys.readouterr().err

    def test_missing_package_names(self, pacman_conf, capsys):
        assert main(['-c', str(pacman_conf)]) == E_NOPKG
        assert "Missing package name(s)" in capsys.readouterr().err

    def test_missing_config(self, tmp_path, capsys):
        assert main(['-c', str(tmp_path / 'nope.conf'), 'firefox']) == E_FILEREAD
        assert "could not be read" in capsys.readouterr().err

    def test_missing_database(self, pacman_conf, tmp_path):
        rc = main(['-c', str(pacman_conf), '-b', str(tmp_path / 'elsewhere'), 'firefox'])
        assert rc == E_DATABASE

    def test_invalid_level(self, pacman_conf, capsys):
        assert main(['-c', str(pacman_conf), '-pppp', 'firefox']) == E_USAGE
        assert "--show-optional" in capsys.readouterr().err

    def test_unknown_option(self, pacman_conf, capsys):
        with pytest.raises(SystemExit) as exc:
            main(['-c', str(pacman_conf), '--bogus', 'firefox'])
        assert exc.value.code == E_USAGE
        assert "unrecognized arguments: --bogus" in capsys.readouterr().err

    def test_version_exits_cleanly(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(['--version'])
        assert exc.value.code == 0
        assert "pacdep" in capsys.readouterr().out
