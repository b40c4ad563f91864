from congregate.main import create_app

app = create_app()

if __name__ == '__main__':
    # Chạy server phát triển; production dùng WSGI server (gunicorn ...)
    app.run(debug=app.config.get("DEBUG", False))
