import PyInstaller.__main__


def main() -> None:
    PyInstaller.__main__.run(
        ["--onefile", "records_cli/main.py", "--name", "records-cli"]
    )


if __name__ == "__main__":
    main()
