"""
Test class registration via `Codec()` and delegation between codecs.
"""

from dataclasses import dataclass, field

from pytest import raises

from classcodec import (
    CircularReferenceError,
    Codec,
    CodecParams,
    ConfigurationError,
    JSONCodec,
    get_descriptor,
)


def test_invalid_codec():
    """
    Test codecs lacking required methods are rejected immediately.
    """

    class NotACodec:
        def stringify(self, value):
            return ""

    with raises(ConfigurationError, match="must implement"):
        _ = Codec(NotACodec())  # type: ignore

    with raises(ConfigurationError, match="parse, register"):
        _ = Codec([JSONCodec(), NotACodec()])  # type: ignore

    with raises(ConfigurationError):
        _ = Codec([])

    builder = Codec(JSONCodec())

    with raises(ConfigurationError):
        builder.delegate_prop("a", NotACodec())  # type: ignore

    with raises(ConfigurationError):
        builder.delegates_to(int, object())  # type: ignore

    with raises(ConfigurationError):
        builder.delegates_to("int", JSONCodec())  # type: ignore


def test_register():
    """
    Test registration with multiple home codecs.
    """
    codec1 = JSONCodec()
    codec2 = JSONCodec()
    builder = Codec([codec1, codec2], tag="shape")

    class Shape:
        def __init__(self, x: int):
            self.x = x

    assert builder.descriptor is None
    assert builder.register(Shape) is Shape

    descriptor = get_descriptor(Shape)
    assert descriptor is builder.descriptor
    assert descriptor is not None
    assert descriptor.cls is Shape
    assert descriptor.tag == "shape"
    assert descriptor.home_codecs == (codec1, codec2)
    assert descriptor.default_codec is codec1
    assert dict(descriptor.property_delegates) == {}
    assert dict(descriptor.class_delegates) == {}

    # registered under its tag with each codec
    for codec in (codec1, codec2):
        assert codec.get_class("shape") is Shape
        assert codec.stringify(Shape(1)) == '{"_type":"shape","x":1}'
        decoded = codec.parse('{"_type":"shape","x":1}')
        assert isinstance(decoded, Shape)
        assert decoded.x == 1

    # descriptor is not inherited
    class SubShape(Shape):
        pass

    assert get_descriptor(SubShape) is None


def test_decorator():
    """
    Test builder used as class decorator.
    """
    codec = JSONCodec()

    @Codec(codec).register
    class Point:
        def __init__(self, x: int):
            self.x = x

    @Codec(codec).register(sample=lambda cls: cls(Point(0)))
    class Holder:
        def __init__(self, point: Point):
            self.point = point

    assert isinstance(Point, type)
    assert isinstance(Holder, type)
    assert "Point" in codec
    assert "Holder" in codec

    decoded = codec.parse(codec.stringify(Holder(Point(5))))
    assert isinstance(decoded, Holder)
    assert isinstance(decoded.point, Point)
    assert decoded.point.x == 5


def test_finalized():
    """
    Test builder can't be modified or reused after registration.
    """
    codec = JSONCodec()
    builder = Codec(codec)

    class A:
        pass

    class B:
        pass

    builder.register(A)

    with raises(ConfigurationError, match="already registered"):
        builder.delegate_prop("a", codec)

    with raises(ConfigurationError, match="already registered"):
        builder.delegates_to(B, codec)

    with raises(ConfigurationError, match="already registered"):
        builder.register(B)

    with raises(ConfigurationError):
        Codec(codec).register(A())  # type: ignore


def test_auto_delegation():
    """
    Test property holding instance of single-codec class is delegated to its codec.
    """
    main_codec = JSONCodec("main")
    color_codec = JSONCodec("color")

    @Codec(color_codec).register
    class Color:
        def __init__(self, r: int = 0, g: int = 0, b: int = 0):
            self.r = r
            self.g = g
            self.b = b

    @Codec(main_codec).register
    class Palette:
        primary = Color()
        name = "default"

        def __init__(self, primary: Color, name: str):
            self.primary = primary
            self.name = name

    descriptor = get_descriptor(Palette)
    assert descriptor is not None
    assert dict(descriptor.property_delegates) == {"primary": color_codec}

    # main codec doesn't know Color, but delegates it
    assert "Color" not in main_codec

    text = main_codec.stringify(Palette(Color(1, 2, 3), "warm"))
    assert (
        text
        == '{"_type":"Palette","primary":{"_type":"Color","r":1,"g":2,"b":3},"name":"warm"}'
    )

    decoded = main_codec.parse(text)
    assert isinstance(decoded, Palette)
    assert isinstance(decoded.primary, Color)
    assert (decoded.primary.r, decoded.primary.g, decoded.primary.b) == (1, 2, 3)
    assert decoded.name == "warm"


def test_auto_delegation_dataclass():
    """
    Test inference from dataclass field defaults.
    """
    main_codec = JSONCodec()
    color_codec = JSONCodec()

    @Codec(color_codec).register
    @dataclass
    class Color:
        r: int = 0

    @Codec(main_codec).register
    @dataclass
    class Theme:
        background: Color = field(default_factory=Color)
        extra: dict = field(default_factory=dict)
        size: int = 10

    descriptor = get_descriptor(Theme)
    assert descriptor is not None
    assert dict(descriptor.property_delegates) == {"background": color_codec}

    theme = Theme(Color(255), {"a": 1}, 12)
    assert main_codec.parse(main_codec.stringify(theme)) == theme


def test_ambiguous():
    """
    Test property holding instance of multi-codec class requires explicit delegation.
    """
    main_codec = JSONCodec()
    shape_codec = JSONCodec()
    alt_shape_codec = JSONCodec()

    @Codec([shape_codec, alt_shape_codec]).register
    class Shape:
        def __init__(self, x: int, y: int):
            self.x = x
            self.y = y

    with raises(ConfigurationError, match=r"Canvas\.shape") as exc_info:

        @Codec(main_codec).register
        class Canvas:
            shape = Shape(0, 0)

    assert "delegates_to(Shape, codec)" in str(exc_info.value)
    assert "Canvas" not in main_codec

    # also detected from sample
    class Frame:
        def __init__(self, shape: Shape):
            self.shape = shape

    with raises(ConfigurationError, match=r"Frame\.shape"):
        Codec(main_codec).register(Frame, sample=lambda cls: cls(Shape(0, 0)))


def test_multi_codec_routing():
    """
    Test multi-codec class round-trips via either codec directly, and via the
    explicitly chosen codec when nested.
    """
    main_codec = JSONCodec("main")
    shape_codec = JSONCodec("shape")
    alt_shape_codec = JSONCodec("alt", params=CodecParams(type_key="kind"))

    @Codec([shape_codec, alt_shape_codec]).register
    class Shape:
        def __init__(self, x: int, y: int):
            self.x = x
            self.y = y

    for codec in (shape_codec, alt_shape_codec):
        decoded = codec.parse(codec.stringify(Shape(1, 2)))
        assert isinstance(decoded, Shape)
        assert (decoded.x, decoded.y) == (1, 2)

    @Codec(main_codec).delegates_to(Shape, alt_shape_codec).register
    class Canvas:
        shape = Shape(0, 0)

        def __init__(self, shape: Shape):
            self.shape = shape

    descriptor = get_descriptor(Canvas)
    assert descriptor is not None
    assert dict(descriptor.property_delegates) == {"shape": alt_shape_codec}

    text = main_codec.stringify(Canvas(Shape(3, 4)))
    assert text == '{"_type":"Canvas","shape":{"kind":"Shape","x":3,"y":4}}'

    decoded = main_codec.parse(text)
    assert isinstance(decoded, Canvas)
    assert isinstance(decoded.shape, Shape)
    assert (decoded.shape.x, decoded.shape.y) == (3, 4)


def test_precedence():
    """
    Test property delegation wins over class delegation, which wins over the home
    codec.
    """
    home = JSONCodec("home")
    by_class = JSONCodec("class", params=CodecParams(type_key="_class"))
    by_prop = JSONCodec("prop", params=CodecParams(type_key="_prop"))

    @Codec([home, by_class, by_prop]).register
    class Shape:
        def __init__(self, x: int):
            self.x = x

    @(
        Codec(home)
        .delegates_to(Shape, by_class)
        .delegate_prop("special", by_prop)
        .register
    )
    class Drawing:
        def __init__(self, special: Shape, shape: Shape, shapes: list[Shape]):
            self.special = special
            self.shape = shape
            self.shapes = shapes

    # not delegated: the home codec tags it
    assert home.stringify([Shape(0)]) == '[{"_type":"Shape","x":0}]'

    text = home.stringify(Drawing(Shape(1), Shape(2), [Shape(3)]))
    assert text == (
        '{"_type":"Drawing",'
        '"special":{"_prop":"Shape","x":1},'
        '"shape":{"_class":"Shape","x":2},'
        '"shapes":[{"_type":"Shape","x":3}]}'
    )

    decoded = home.parse(text)
    assert isinstance(decoded, Drawing)
    assert isinstance(decoded.special, Shape)
    assert isinstance(decoded.shape, Shape)
    assert isinstance(decoded.shapes[0], Shape)
    assert [decoded.special.x, decoded.shape.x, decoded.shapes[0].x] == [1, 2, 3]

    # property delegation checked before the object's own tag
    decoded = home.parse(
        '{"_type":"Drawing","special":{"_type":"Ghost","_prop":"Shape","x":1}}'
    )
    assert isinstance(decoded.special, Shape)


def test_delegate_prop_plain():
    """
    Test plain values of a delegated property are processed by the target codec.
    """
    main_codec = JSONCodec()
    other_codec = JSONCodec()

    class Point:
        def __init__(self, x: int):
            self.x = x

    other_codec.register(Point)

    @Codec(main_codec).delegate_prop("points", other_codec).register
    class Path:
        def __init__(self, points: list[Point], label: str):
            self.points = points
            self.label = label

    text = main_codec.stringify(Path([Point(1)], "a"))
    assert text == '{"_type":"Path","points":[{"_type":"Point","x":1}],"label":"a"}'

    decoded = main_codec.parse(text)
    assert isinstance(decoded.points[0], Point)
    assert decoded.label == "a"

    # without parent context the main codec can't resolve it
    assert main_codec.stringify([Point(1)]) == '[{"x":1}]'


def test_delegation_cycle():
    """
    Test cycles through a delegated codec are detected.
    """
    main_codec = JSONCodec()
    color_codec = JSONCodec()

    @Codec(color_codec).register
    class Color:
        owner = None

    @Codec(main_codec).register
    class Palette:
        primary = Color()

    palette = Palette()
    palette.primary = Color()
    palette.primary.owner = palette

    with raises(CircularReferenceError) as exc_info:
        _ = main_codec.stringify(palette)
    assert exc_info.value.path == ("primary", "owner")


def test_text_codec():
    """
    Test delegation to a codec only providing text-level methods.
    """

    class TextCodec:
        def __init__(self):
            self.inner = JSONCodec()
            self.calls: list[str] = []

        def register(self, cls):
            self.inner.register(cls)
            return self

        def stringify(self, value, replacer=None, space=None):
            self.calls.append("stringify")
            return self.inner.stringify(value, replacer, space)

        def parse(self, text, reviver=None):
            self.calls.append("parse")
            return self.inner.parse(text, reviver)

    main_codec = JSONCodec()
    text_codec = TextCodec()

    @Codec(text_codec).register  # type: ignore
    class Color:
        def __init__(self, r: int = 0):
            self.r = r

    @Codec(main_codec).register
    class Palette:
        primary = Color()

    palette = Palette()
    palette.primary = Color(7)

    text = main_codec.stringify(palette)
    assert text == '{"_type":"Palette","primary":{"_type":"Color","r":7}}'

    decoded = main_codec.parse(text)
    assert isinstance(decoded.primary, Color)
    assert decoded.primary.r == 7
    assert text_codec.calls == ["stringify", "parse"]


def test_type_key_collision():
    """
    Test property named like a home codec's type key is rejected at registration.
    """
    codec = JSONCodec(params=CodecParams(type_key="kind"))

    with raises(ConfigurationError, match="kind"):

        @Codec([JSONCodec(), codec]).register
        class Animal:
            kind = "cat"


def test_auto_delegation_annotations():
    """
    Test inference from annotated properties without defaults, such as dataclass
    fields.
    """
    main_codec = JSONCodec()
    color_codec = JSONCodec()
    shape_codec = JSONCodec()
    alt_shape_codec = JSONCodec()

    @Codec(color_codec).register
    @dataclass
    class Color:
        r: int

    @Codec(main_codec).register
    @dataclass
    class Theme:
        background: Color
        accent: Color | None = None
        name: str = "plain"

    descriptor = get_descriptor(Theme)
    assert descriptor is not None
    assert dict(descriptor.property_delegates) == {
        "background": color_codec,
        "accent": color_codec,
    }

    theme = Theme(Color(1), Color(2))
    assert main_codec.parse(main_codec.stringify(theme)) == theme

    @Codec([shape_codec, alt_shape_codec]).register
    @dataclass
    class Shape:
        x: int

    with raises(ConfigurationError, match=r"Canvas\.shape"):

        @Codec(main_codec).register
        @dataclass
        class Canvas:
            shape: Shape

    assert "Canvas" not in main_codec


def test_runtime_delegation():
    """
    Test property assigned only in `__init__` is routed to the home codec of its
    value's class.
    """
    main_codec = JSONCodec("main")
    color_codec = JSONCodec("color")

    @Codec(color_codec, tag="InitColor").register
    class Color:
        def __init__(self, r: int):
            self.r = r

    @Codec(main_codec).register
    class Drawing:
        def __init__(self, color: Color):
            self.color = color

    descriptor = get_descriptor(Drawing)
    assert descriptor is not None
    assert dict(descriptor.property_delegates) == {}

    text = main_codec.stringify(Drawing(Color(5)))
    assert text == '{"_type":"Drawing","color":{"_type":"InitColor","r":5}}'

    decoded = main_codec.parse(text)
    assert isinstance(decoded, Drawing)
    assert isinstance(decoded.color, Color)
    assert decoded.color.r == 5


def test_runtime_ambiguous():
    """
    Test property assigned only in `__init__` holding instance of multi-codec class
    is rejected when serialized or parsed.
    """
    main_codec = JSONCodec()
    shape_codec = JSONCodec()
    alt_shape_codec = JSONCodec()

    @Codec([shape_codec, alt_shape_codec], tag="InitShape").register
    class Shape:
        def __init__(self, x: int):
            self.x = x

    @Codec(main_codec).register
    class Board:
        def __init__(self, shape: Shape):
            self.shape = shape

    with raises(ConfigurationError, match=r"Board\.shape") as exc_info:
        _ = main_codec.stringify(Board(Shape(0)))
    assert "delegates_to(Shape, codec)" in str(exc_info.value)

    with raises(ConfigurationError, match=r"Board\.shape"):
        _ = main_codec.parse('{"_type":"Board","shape":{"_type":"InitShape","x":0}}')


def test_register_twice():
    """
    Test class can't be registered via another builder once registered.
    """
    codec1 = JSONCodec()
    codec2 = JSONCodec()

    class Point:
        pass

    Codec(codec1).register(Point)

    with raises(ConfigurationError, match="already registered"):
        Codec(codec2).register(Point)

    assert "Point" not in codec2
    descriptor = get_descriptor(Point)
    assert descriptor is not None
    assert descriptor.home_codecs == (codec1,)
