from StartupMind.tools.publisher import resolve_publisher


def test_blank_path_is_unknown():
    assert resolve_publisher("") == "Unknown"
    assert resolve_publisher("   ") == "Unknown"


def test_nonexistent_path_is_unknown(tmp_path):
    assert resolve_publisher(str(tmp_path / "missing.exe")) == "Unknown"


def test_reader_result_is_used(tmp_path):
    exe = tmp_path / "tool.exe"
    exe.write_bytes(b"MZ")
    assert resolve_publisher(str(exe), reader=lambda p: "  Contoso Ltd. ") == "Contoso Ltd."


def test_blank_company_is_unknown(tmp_path):
    exe = tmp_path / "tool.exe"
    exe.write_bytes(b"MZ")
    assert resolve_publisher(str(exe), reader=lambda p: "") == "Unknown"


def test_reader_errors_fold_to_unknown(tmp_path):
    exe = tmp_path / "tool.exe"
    exe.write_bytes(b"MZ")

    def boom(path):
        raise OSError("no version resource")

    assert resolve_publisher(str(exe), reader=boom) == "Unknown"


def test_default_reader_never_raises(tmp_path):
    # off Windows ctypes.windll is missing; on Windows this file has no version resource
    exe = tmp_path / "plain.exe"
    exe.write_bytes(b"not a PE file")
    assert resolve_publisher(str(exe)) == "Unknown"
