from datagod.utils.json_extract import extract_json_object, find_first_object_span


class TestExtractJsonObject:
    def test_plain_json(self):
        res = extract_json_object(b'{"status": 200, "message": "ok"}')
        assert res.ok
        assert res.data == {"status": 200, "message": "ok"}

    def test_php_warning_prefix_and_html_suffix(self):
        body = (
            "<br />\n<b>Warning</b>: Undefined index in /var/www/initiate.php on line 12<br />\n"
            '{"status": 200, "message": "Order placed"}<!-- served in 0.2s -->'
        )
        res = extract_json_object(body)
        assert res.ok
        assert res.data["status"] == 200

    def test_braces_inside_strings_do_not_end_the_span(self):
        body = 'noise {"message": "use {curly} braces \\" here", "code": 1} trailing'
        res = extract_json_object(body)
        assert res.ok
        assert res.data["message"] == 'use {curly} braces " here'
        assert res.data["code"] == 1

    def test_nested_object(self):
        res = extract_json_object('x{"order": {"status": "completed"}}y')
        assert res.ok
        assert res.data["order"]["status"] == "completed"

    def test_empty_body(self):
        res = extract_json_object(b"")
        assert not res.ok
        assert res.error

    def test_no_object(self):
        res = extract_json_object("Service Unavailable")
        assert not res.ok

    def test_top_level_array_is_not_an_object(self):
        res = extract_json_object("[1, 2, 3]")
        assert not res.ok

    def test_span_of_unbalanced_text(self):
        assert find_first_object_span("{ never closed") is None
