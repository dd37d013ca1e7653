import pytest

from fdftools.fdf_header import (
    ByteOrder,
    ComponentType,
    FdfError,
    FdfHeader,
    InvalidGeometryError,
    MalformedFieldError,
    MissingRequiredFieldError,
    UnknownComponentTypeError,
    UnsupportedComponentTypeError,
    apply_line,
    apply_tokens,
    component_dtype,
    component_type_from_storage,
    determinant,
    direction_from_orientation,
    identity_matrix,
    normalize_line,
    parse_numeric_list,
    resolve_header,
    tokenize,
)


def _parse(lines, file_size=1_000_000):
    header = FdfHeader()
    for line in lines:
        apply_line(header, line)
    return resolve_header(header, file_size)


# ---------------------------------------------------------------------------
# Line normalizer / tokenizer
# ---------------------------------------------------------------------------


class TestNormalizeLine:
    def test_whitespace_inside_braces_is_removed(self):
        assert normalize_line("float matrix = { 64 64 };") == "float matrix = {64,64};"

    def test_comma_separated_list(self):
        assert normalize_line("float  roi[] = {25.6, 25.6, 0.5};\n") == "float  roi = {25.6,25.6,0.5};"

    def test_c_decorations_are_stripped(self):
        assert normalize_line('char  *storage = "float";') == "char  storage = float;"

    def test_whitespace_outside_braces_is_kept(self):
        assert normalize_line("int    bigendian = 0;") == "int    bigendian = 0;"

    def test_unclosed_brace_passes_through(self):
        assert normalize_line("float roi = { 1 2") == "float roi = { 1 2"


class TestTokenize:
    def test_empty(self):
        assert tokenize("") == []

    def test_space_and_semicolon_delimit(self):
        assert tokenize("float  matrix = {64,64};") == ["float", "matrix", "=", "{64,64}"]

    def test_only_delimiters(self):
        assert tokenize(" ; ;") == []


def test_parse_numeric_list():
    assert parse_numeric_list("{64,64}") == [64.0, 64.0]
    assert parse_numeric_list("{1, -0.5 2e1}") == [1.0, -0.5, 20.0]
    assert parse_numeric_list("3") == [3.0]
    with pytest.raises(MalformedFieldError):
        parse_numeric_list("{1,abc}")


# ---------------------------------------------------------------------------
# Field interpreter
# ---------------------------------------------------------------------------


class TestFieldInterpreter:
    def test_only_four_token_lines_are_applied(self):
        header = FdfHeader()
        apply_tokens(header, ["float", "matrix", "=", "{4,4}", "extra"])
        apply_tokens(header, ["matrix", "=", "{4,4}"])
        assert header.dimensions == []

    def test_comment_and_unknown_lines_are_ignored(self):
        header = FdfHeader()
        apply_line(header, "#!/usr/local/fdf/startup")
        apply_line(header, "float  rank = 2;")
        apply_line(header, 'char  *sequence = "gems";')
        assert header == FdfHeader()

    def test_spatial_rank_bits_checksum(self):
        header = FdfHeader()
        apply_line(header, 'char  *spatial_rank = "2dfov";')
        apply_line(header, "float  bits = 32;")
        apply_line(header, "int    checksum = 0987654321;")
        assert header.spatial_rank == "2dfov"
        assert header.bits == 32
        assert header.checksum == 987654321

    def test_bits_must_be_numeric(self):
        with pytest.raises(MalformedFieldError):
            apply_line(FdfHeader(), "int bits = lots;")

    def test_bigendian(self):
        header = FdfHeader()
        apply_line(header, "int bigendian = 0;")
        assert header.byte_order is ByteOrder.LITTLE_ENDIAN
        apply_line(header, "int bigendian = 1;")
        assert header.byte_order is ByteOrder.BIG_ENDIAN

    def test_byte_order_is_unset_by_default(self):
        assert FdfHeader().byte_order is None

    def test_storage_keywords(self):
        header = FdfHeader()
        apply_line(header, 'char  *storage = "double";')
        assert header.component_type is ComponentType.DOUBLE
        assert component_type_from_storage("unsigned short") is ComponentType.USHORT
        assert component_type_from_storage("unsigned char") is ComponentType.UCHAR
        assert component_type_from_storage("long") is ComponentType.LONG

    def test_unknown_storage_is_an_error(self):
        with pytest.raises(UnknownComponentTypeError) as excinfo:
            apply_line(FdfHeader(), "char storage = weird;")
        assert excinfo.value.value == "weird"
        assert "weird" in str(excinfo.value)
        assert excinfo.value.kind == "UnknownComponentType"
        assert isinstance(excinfo.value, FdfError)

    def test_origin_is_scaled_and_widens(self):
        header = FdfHeader()
        apply_line(header, "float matrix = {4, 4};")
        apply_line(header, "float origin = {10, -20, 35};")
        assert header.dimensions == [4, 4, 0]
        assert header.origin == pytest.approx([1.0, -2.0, 3.5])
        assert header.direction == identity_matrix(3)

    def test_matrix_widens_but_never_shrinks(self):
        header = FdfHeader()
        apply_line(header, "float matrix = {4, 5, 6};")
        apply_line(header, "float matrix = {7, 8};")
        assert header.dimensions == [7, 8, 6]
        assert len(header.origin) == 3

    @pytest.mark.parametrize("value", ["{nan, 4}", "{inf, 4}", "{2.5, 4}"])
    def test_matrix_sizes_must_be_whole_numbers(self, value):
        with pytest.raises(MalformedFieldError):
            apply_line(FdfHeader(), f"float matrix[] = {value};")

    def test_span_roi_location(self):
        header = FdfHeader()
        apply_line(header, "float span[] = {1, 2};")
        apply_line(header, "float roi[] = {3, 4};")
        apply_line(header, "float location[] = {0.5, 0.25, -1};")
        assert header.span == [1.0, 2.0]
        assert header.roi == [3.0, 4.0]
        assert header.location == [0.5, 0.25, -1.0]


# ---------------------------------------------------------------------------
# Geometry & type resolver
# ---------------------------------------------------------------------------


class TestResolver:
    def test_reference_header(self):
        header = _parse([
            "float matrix = { 64 64 };",
            "float roi = { 10 10 };",
            "int bigendian = 0;",
            "char storage = float;",
        ])
        assert header.dimensions == [64, 64]
        assert header.spacing == pytest.approx([1.5625, 1.5625])
        assert header.byte_order is ByteOrder.LITTLE_ENDIAN
        assert header.component_type is ComponentType.FLOAT
        assert header.region_size == [64, 64]
        assert header.region_index == [0, 0]
        assert header.direction == identity_matrix(2)
        assert header.origin == [0.0, 0.0]

    def test_orientation_with_extra_values_for_2d(self):
        header = _parse([
            "float matrix = { 64 64 };",
            "float roi = { 10 10 };",
            "char storage = float;",
            "float orientation = { 1 0 0 1 0 0 };",
        ])
        assert header.direction == identity_matrix(2)

    def test_singular_orientation_becomes_identity(self):
        # leading 2x2 of a 3x3 block: axis 0 = (0, 1), axis 1 = (0, 1)
        header = _parse([
            "float matrix = {8, 8};",
            "float roi = {1, 1};",
            "char storage = short;",
            "float orientation = {0,1,0, 1,0,0, 0,0,1};",
        ])
        assert header.direction == identity_matrix(2)

    def test_orientation_is_column_major(self):
        header = _parse([
            "float matrix = {8, 8, 4};",
            "float roi = {1, 1, 1};",
            "char storage = short;",
            "float orientation = {0,1,0, -1,0,0, 0,0,1};",
        ])
        assert header.direction == [
            [0.0, -1.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 0.0, 1.0],
        ]

    def test_truncated_orientation_becomes_identity(self):
        assert direction_from_orientation([0.0, 1.0, 1.0], 2) == identity_matrix(2)

    def test_spacing_and_offset(self):
        header = _parse([
            "float matrix = {2, 2};",
            "float roi = {0.4, 0.2};",
            "char storage = unsigned char;",
            'char *storage = "char";',
        ], file_size=100)
        assert header.spacing == pytest.approx([2.0, 1.0])
        assert header.component_size == 1
        assert header.data_offset == 96
        assert header.file_size == 100

    def test_offset_uses_component_size(self):
        header = _parse([
            "float matrix = {3, 2};",
            "float roi = {1, 1};",
            "char storage = double;",
        ], file_size=1000)
        assert header.image_size_in_bytes == 48
        assert header.data_offset == 952

    def test_missing_storage(self):
        with pytest.raises(MissingRequiredFieldError) as excinfo:
            _parse(["float matrix = {2, 2};", "float roi = {1, 1};"])
        assert excinfo.value.field_name == "storage"

    def test_missing_matrix(self):
        with pytest.raises(MissingRequiredFieldError):
            _parse(["float roi = {1, 1};", "char storage = float;"])

    def test_missing_roi(self):
        with pytest.raises(MissingRequiredFieldError):
            _parse(["float matrix = {2, 2};", "char storage = float;"])

    def test_zero_dimension(self):
        with pytest.raises(InvalidGeometryError):
            _parse(["float matrix = {0, 2};", "float roi = {1, 1};", "char storage = float;"])

    def test_roi_shorter_than_dimensions(self):
        with pytest.raises(InvalidGeometryError):
            _parse(["float matrix = {2, 2, 2};", "float roi = {1, 1};", "char storage = float;"])

    def test_negative_offset_is_kept_for_the_reader(self):
        header = _parse(
            ["float matrix = {4, 4};", "float roi = {1, 1};", "char storage = float;"],
            file_size=10,
        )
        assert header.data_offset == 10 - 64


def test_determinant():
    assert determinant([[2.0]]) == 2.0
    assert determinant(identity_matrix(3)) == 1.0
    assert determinant([[1.0, 2.0], [2.0, 4.0]]) == 0
    assert determinant([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0], [7.0, 8.0, 9.0]]) == 0
    assert determinant([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]]) == 1.0
    assert determinant([[2.0, 0, 0, 0], [0, 3.0, 0, 0], [0, 0, 1.0, 0], [0, 0, 0, -1.0]]) == -6.0


def test_component_dtype_rejects_unknown_tags():
    with pytest.raises(UnsupportedComponentTypeError):
        component_dtype(None)
    with pytest.raises(UnsupportedComponentTypeError):
        component_dtype("float")
    assert component_dtype(ComponentType.USHORT).itemsize == 2
