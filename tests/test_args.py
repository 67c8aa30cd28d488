import pytest

from v80smi.args import ParsedArgs, UsageError, convert_bdf, help_text, parse_args


@pytest.fixture
def vrtbin_image(tmp_path):
    path = tmp_path / "design.vrtbin"
    path.write_bytes(b"data")
    return str(path)


def test_convert_bdf_with_domain():
    assert convert_bdf("0000:21:00.0") == "21:00.0"


def test_convert_bdf_without_domain_keeps_bus():
    assert convert_bdf("21:00.0") == "21"


def test_convert_bdf_plain():
    assert convert_bdf("21") == "21"


def test_help_text_lists_every_command():
    text = help_text()
    assert text.startswith("Usage: v80-smi <command> [options]\n")
    for command in ("query", "partial_program", "report_utilization", "reset"):
        assert f"  {command} " in text


def test_is_command():
    parsed = ParsedArgs(command="list")
    assert parsed.is_command("list")
    assert not parsed.is_command("query")


def test_query_with_device():
    parsed = parse_args(["query", "-d", "21:00.0"])
    assert parsed.command == "query"
    assert parsed.device == "21"
    assert parsed.partition == -1


def test_options_before_command_and_long_forms():
    parsed = parse_args(["--device=0000:21:00.0", "reload"])
    assert parsed.is_command("reload")
    assert parsed.device == convert_bdf("0000:21:00.0")


def test_long_option_prefix_and_separate_value():
    parsed = parse_args(["reset", "--dev", "0000:c1:00.0"])
    assert parsed.device == convert_bdf("0000:c1:00.0")


def test_attached_short_value():
    parsed = parse_args(["-d0000:21:00.0", "list"])
    assert parsed.device == convert_bdf("0000:21:00.0")


def test_help_exits_successfully():
    with pytest.raises(UsageError) as info:
        parse_args(["-h", "query"])
    assert info.value.status == 0


def test_invalid_option():
    with pytest.raises(UsageError) as info:
        parse_args(["query", "-x"])
    assert info.value.status == 1
    assert info.value.show_help


def test_missing_option_argument():
    with pytest.raises(UsageError, match="requires an argument"):
        parse_args(["query", "-d"])


def test_no_command():
    with pytest.raises(UsageError, match="No command specified"):
        parse_args(["-d", "21:00.0"])


def test_unknown_command():
    with pytest.raises(UsageError, match="Unknown command frobnicate"):
        parse_args(["frobnicate"])


def test_program_complete(vrtbin_image):
    parsed = parse_args(["program", "-d", "21:00.0", "-i", vrtbin_image, "-p", "1"])
    assert parsed.image == vrtbin_image
    assert parsed.partition == 1


def test_program_missing_partition(vrtbin_image):
    with pytest.raises(UsageError, match="Missing required options for 'program'"):
        parse_args(["program", "-d", "21:00.0", "-i", vrtbin_image])


def test_program_partition_too_large(vrtbin_image):
    with pytest.raises(UsageError) as info:
        parse_args(["program", "-d", "21:00.0", "-i", vrtbin_image, "-p", "2"])
    assert info.value.message == "Partition must be 0 or 1"
    assert not info.value.show_help


def test_program_wrong_extension(tmp_path):
    image = tmp_path / "design.bin"
    image.write_bytes(b"")
    with pytest.raises(UsageError, match="Image must be a .vrtbin file"):
        parse_args(["program", "-d", "21:00.0", "-i", str(image), "-p", "0"])


def test_program_missing_image(tmp_path):
    with pytest.raises(UsageError, match="Image file does not exist"):
        parse_args(["program", "-d", "21", "-i", str(tmp_path / "x.vrtbin"), "-p", "0"])


def test_partial_program_accepts_pdi(tmp_path):
    image = tmp_path / "design.pdi"
    image.write_bytes(b"")
    parsed = parse_args(["partial_program", "-d", "21:00.0", "-i", str(image), "-p", "0"])
    assert parsed.is_command("partial_program")
    assert parsed.image == str(image)


def test_partial_program_wrong_extension(tmp_path):
    image = tmp_path / "design.bit"
    image.write_bytes(b"")
    with pytest.raises(UsageError, match="Image must be a .vrtbin or pdi file"):
        parse_args(["partial_program", "-d", "21", "-i", str(image), "-p", "0"])


def test_inspect_requires_image():
    with pytest.raises(UsageError, match="Missing required options for 'inspect'"):
        parse_args(["inspect"])


def test_inspect_with_image(vrtbin_image):
    parsed = parse_args(["inspect", "--image", vrtbin_image])
    assert parsed.is_command("inspect")
    assert parsed.image == vrtbin_image


def test_invalid_partition_value():
    with pytest.raises(UsageError, match="Invalid partition"):
        parse_args(["query", "-p", "abc"])