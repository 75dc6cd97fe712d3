"""
Built-in catalog entries.

Entries are plain JSON-shaped dicts so a custom catalog file can use the
very same layout (see ``load_catalog``).
"""

from .base import Catalog

BUILTIN_PACKAGES: list[dict] = [
    {
        "id": "mysql",
        "name": "MySQL Server",
        "description": "Open-source relational database",
        "category": "database",
        "family": "mysql",
        "install_subpath": "database/mysql",
        "executable": {"windows": "bin/mysqld.exe", "linux": "bin/mysqld", "darwin": "bin/mysqld"},
        "config_file": "my.cnf",
        "ports": [3306],
        "versions": [
            {
                "version": "8.0.35",
                "latest": True,
                "downloads": {
                    "windows/amd64": "https://dev.mysql.com/get/Downloads/MySQL-8.0/mysql-8.0.35-winx64.zip",
                    "linux/amd64": "https://dev.mysql.com/get/Downloads/MySQL-8.0/mysql-8.0.35-linux-glibc2.17-x86_64.tar.xz",
                },
            },
            {
                "version": "5.7.44",
                "downloads": {
                    "windows/amd64": "https://dev.mysql.com/get/Downloads/MySQL-5.7/mysql-5.7.44-winx64.zip",
                    "linux/amd64": "https://dev.mysql.com/get/Downloads/MySQL-5.7/mysql-5.7.44-linux-glibc2.12-x86_64.tar.gz",
                },
            },
        ],
    },
    {
        "id": "mariadb",
        "name": "MariaDB",
        "description": "Community-developed MySQL fork",
        "category": "database",
        "family": "mariadb",
        "install_subpath": "database/mariadb",
        "executable": {"windows": "bin/mariadbd.exe", "linux": "bin/mariadbd", "darwin": "bin/mariadbd"},
        "ports": [3306],
        "versions": [
            {
                "version": "11.2.2",
                "latest": True,
                "downloads": {
                    "windows/amd64": "https://archive.mariadb.org/mariadb-11.2.2/winx64-packages/mariadb-11.2.2-winx64.zip",
                    "linux/amd64": "https://archive.mariadb.org/mariadb-11.2.2/bintar-linux-systemd-x86_64/mariadb-11.2.2-linux-systemd-x86_64.tar.gz",
                },
            },
            {
                "version": "10.11.6",
                "lts": True,
                "downloads": {
                    "windows/amd64": "https://archive.mariadb.org/mariadb-10.11.6/winx64-packages/mariadb-10.11.6-winx64.zip",
                    "linux/amd64": "https://archive.mariadb.org/mariadb-10.11.6/bintar-linux-systemd-x86_64/mariadb-10.11.6-linux-systemd-x86_64.tar.gz",
                },
            },
        ],
    },
    {
        "id": "redis",
        "name": "Redis",
        "description": "In-memory data structure store",
        "category": "database",
        "family": "redis",
        "install_subpath": "database/redis",
        "executable": {"windows": "redis-server.exe", "linux": "src/redis-server", "darwin": "src/redis-server"},
        "ports": [6379],
        "versions": [
            {
                "version": "7.2.3",
                "latest": True,
                "downloads": {
                    "windows/amd64": "https://github.com/tporadowski/redis/releases/download/v7.2.3/Redis-7.2.3-Windows-x64.zip",
                    "linux/amd64": "https://download.redis.io/releases/redis-7.2.3.tar.gz",
                },
            },
        ],
    },
    {
        "id": "php",
        "name": "PHP",
        "description": "Server-side scripting language",
        "category": "runtime",
        "family": "php-fcgi",
        "install_subpath": "runtime/php",
        "executable": {"windows": "php.exe", "linux": "bin/php", "darwin": "bin/php"},
        "versions": [
            {
                "version": "8.4.16",
                "latest": True,
                "downloads": {
                    "windows/amd64": "https://windows.php.net/downloads/releases/php-8.4.16-nts-Win32-vs17-x64.zip",
                },
            },
            {
                "version": "8.3.29",
                "downloads": {
                    "windows/amd64": "https://windows.php.net/downloads/releases/php-8.3.29-nts-Win32-vs16-x64.zip",
                },
            },
            {
                "version": "8.2.30",
                "downloads": {
                    "windows/amd64": "https://windows.php.net/downloads/releases/php-8.2.30-nts-Win32-vs16-x64.zip",
                },
            },
            {
                "version": "8.1.34",
                "downloads": {
                    "windows/amd64": "https://windows.php.net/downloads/releases/php-8.1.34-nts-Win32-vs16-x64.zip",
                },
            },
        ],
    },
    {
        "id": "nodejs",
        "name": "Node.js",
        "description": "JavaScript runtime",
        "category": "runtime",
        "family": "runtime",
        "install_subpath": "runtime/nodejs",
        "executable": {"windows": "node.exe", "linux": "bin/node", "darwin": "bin/node"},
        "versions": [
            {
                "version": "20.10.0",
                "latest": True,
                "lts": True,
                "downloads": {
                    "windows/amd64": "https://nodejs.org/dist/v20.10.0/node-v20.10.0-win-x64.zip",
                    "linux/amd64": "https://nodejs.org/dist/v20.10.0/node-v20.10.0-linux-x64.tar.xz",
                    "darwin/amd64": "https://nodejs.org/dist/v20.10.0/node-v20.10.0-darwin-x64.tar.gz",
                    "darwin/arm64": "https://nodejs.org/dist/v20.10.0/node-v20.10.0-darwin-arm64.tar.gz",
                },
            },
            {
                "version": "18.19.0",
                "lts": True,
                "downloads": {
                    "windows/amd64": "https://nodejs.org/dist/v18.19.0/node-v18.19.0-win-x64.zip",
                    "linux/amd64": "https://nodejs.org/dist/v18.19.0/node-v18.19.0-linux-x64.tar.xz",
                    "darwin/amd64": "https://nodejs.org/dist/v18.19.0/node-v18.19.0-darwin-x64.tar.gz",
                },
            },
        ],
    },
    {
        "id": "nginx",
        "name": "Nginx",
        "description": "High-performance web server",
        "category": "webserver",
        "family": "nginx",
        "install_subpath": "webserver/nginx",
        "executable": {"windows": "nginx.exe", "linux": "sbin/nginx", "darwin": "sbin/nginx"},
        "config_file": "conf/nginx.conf",
        "ports": [80, 443],
        "versions": [
            {
                "version": "1.25.3",
                "latest": True,
                "downloads": {
                    "windows/amd64": "https://nginx.org/download/nginx-1.25.3.zip",
                    "linux/amd64": "https://nginx.org/download/nginx-1.25.3.tar.gz",
                },
            },
            {
                "version": "1.24.0",
                "downloads": {
                    "windows/amd64": "https://nginx.org/download/nginx-1.24.0.zip",
                    "linux/amd64": "https://nginx.org/download/nginx-1.24.0.tar.gz",
                },
            },
        ],
    },
    {
        "id": "phpmyadmin",
        "name": "phpMyAdmin",
        "description": "MySQL web administration tool",
        "category": "tools",
        "family": "tool",
        "install_subpath": "addons/phpmyadmin",
        "versions": [
            {
                "version": "5.2.1",
                "latest": True,
                "downloads": {
                    "all": "https://files.phpmyadmin.net/phpMyAdmin/5.2.1/phpMyAdmin-5.2.1-all-languages.zip",
                },
            },
        ],
    },
    {
        "id": "adminer",
        "name": "Adminer",
        "description": "Lightweight database management",
        "category": "tools",
        "family": "tool",
        "install_subpath": "addons/adminer",
        "versions": [
            {
                "version": "4.8.1",
                "latest": True,
                "downloads": {
                    "all": "https://github.com/vrana/adminer/releases/download/v4.8.1/adminer-4.8.1.php",
                },
            },
        ],
    },
    {
        "id": "composer",
        "name": "Composer",
        "description": "PHP dependency manager",
        "category": "tools",
        "family": "tool",
        "install_subpath": "addons/composer",
        "executable": {"windows": "composer.phar", "linux": "composer.phar", "darwin": "composer.phar"},
        "versions": [
            {
                "version": "2.6.6",
                "latest": True,
                "downloads": {
                    "all": "https://getcomposer.org/download/2.6.6/composer.phar",
                },
            },
        ],
    },
]


def builtin_catalog() -> Catalog:
    """Build a fresh catalog from the built-in entries."""
    return Catalog.from_list(BUILTIN_PACKAGES)
