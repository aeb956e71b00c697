from starlette.datastructures import FormData

from utils.forms import _form_fields


def test_list_fields_accept_json_csv_and_repeats():
    fields = _form_fields(
        FormData(
            [
                ("features", '["pool", "garage"]'),
                ("imageUrls", "https://a.example/1.jpg, https://a.example/2.jpg"),
            ]
        )
    )
    assert fields["features"] == ["pool", "garage"]
    assert fields["imageUrls"] == ["https://a.example/1.jpg", "https://a.example/2.jpg"]

    repeated = _form_fields(FormData([("features", "pool"), ("features", "garage")]))
    assert repeated["features"] == ["pool", "garage"]


def test_location_from_json_and_nested_keys():
    from_json = _form_fields(
        FormData([("location", '{"city": "Denver", "coordinates": [-104.99, 39.74]}')])
    )
    assert from_json["location"] == {"city": "Denver", "coordinates": [-104.99, 39.74]}

    nested = _form_fields(
        FormData(
            [
                ("location.city", "Denver"),
                ("location[zipCode]", "80202"),
                ("location.coordinates", "-104.99,39.74"),
            ]
        )
    )
    assert nested["location"] == {
        "city": "Denver",
        "zipCode": "80202",
        "coordinates": ["-104.99", "39.74"],
    }


def test_empty_inputs_are_treated_as_absent():
    fields = _form_fields(
        FormData([("title", "Loft"), ("yearBuilt", ""), ("squareFootage", "  ")])
    )

    assert fields == {"title": "Loft"}
