"""
Hostel Hub - development server

    python -m hostelhub.server
    flask --app hostelhub.server run
"""

from . import create_app

app = create_app()


def main():
    port = app.config['PORT']

    print(f"""
╔════════════════════════════════════════════════════════════╗
║     Hostel Hub - Flask Backend                             ║
║     Server running on http://localhost:{port}                 ║
╚════════════════════════════════════════════════════════════╝
    """)

    app.run(host='0.0.0.0', port=port, debug=app.config['DEBUG'])


if __name__ == '__main__':
    main()
