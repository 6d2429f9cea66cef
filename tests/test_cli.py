import json

from dbintrospect.cli import main


def test_from_csv_writes_json(tmp_path):
    columns = tmp_path / "columns.csv"
    columns.write_text("schema,table,column,nullable,type\ndbo,users,id,false,int\ndbo,users,is_active,true,bit\n")
    out = tmp_path / "out" / "schema.json"

    assert main(["from-csv", str(columns), str(out), "--no-inference"]) == 0

    document = json.loads(out.read_text())
    (table,) = document["tables"]
    assert table["name"] == "users"
    assert [c["resolved_type"] for c in table["columns"]] == [None, None]


def test_extract_sqlite(shop_db, tmp_path):
    out = tmp_path / "schema.json"
    assert main(["extract", f"sqlite:///{shop_db}", str(out), "--no-views", "--workers", "2"]) == 0
    document = json.loads(out.read_text())
    assert [t["name"] for t in document["tables"]] == ["orders", "users"]
    assert document["relationships"][0]["table_to"] == "users"


def test_bad_options_file(tmp_path):
    config = tmp_path / "options.yaml"
    config.write_text("unknown_option: 1\n")
    code = main(["extract", "sqlite:///x.db", str(tmp_path / "o.json"), "--config", str(config)])
    assert code == 1


def test_unsupported_engine():
    assert main(["extract", "oracle://u:p@host/db", "out.json"]) == 1
