"""
数据库会话管理模块

提供数据库引擎创建、会话管理等功能。

公开 API:
- db_manager: 数据库管理器单例
- init_database(): 初始化数据库连接
- get_engine(): 获取数据库引擎
- db_session_scope(): 事务边界上下文管理器（提交/回滚/清理）
- with_db_session(): 装饰器方式管理 session
- on_request_end(): 清理当前作用域的 session

树形结构的级联改写跨越多行，本身不保证原子性，
调用方应在 db_session_scope() 中完成一次移动或删除。
"""

from typing import Optional, Callable, Any, TypeVar, Generator
from uuid import uuid4
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session, Session
from sqlalchemy.pool import StaticPool

from ..log import get_logger

_logger = get_logger("ytree.orm.session")

T = TypeVar('T')

__all__ = [
    'db_manager',
    'init_database',
    'get_engine',
    'db_session_scope',
    'with_db_session',
    'on_request_end',
]


class DatabaseManager:
    """数据库管理器（单例）

    封装数据库连接状态和会话管理，提供统一的访问接口。

    使用示例:
        from ytree.orm import db_manager

        db_manager.init(database_url="sqlite:///./tree.db")
        engine = db_manager.engine
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._engine = None
        self._session_scope = None
        self._session_maker = None
        self._scope_id_var: ContextVar[str] = ContextVar('scope_id', default='')
        self._initialized = True

    # ==================== 属性访问 ====================

    @property
    def engine(self):
        """获取数据库引擎（只读）

        Raises:
            RuntimeError: 数据库未初始化时
        """
        if self._engine is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._engine

    @property
    def session_scope(self):
        """获取 scoped session（只读）"""
        if self._session_scope is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._session_scope

    @property
    def is_initialized(self) -> bool:
        """检查数据库是否已初始化"""
        return self._engine is not None and self._session_scope is not None

    # ==================== 核心方法 ====================

    def init(
        self,
        database_url: str = None,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        pool_pre_ping: bool = True,
        sql_log_enabled: bool = False,
        logger: logging.Logger = None,
        scopefunc: Callable = None,
        config: Any = None,
        logging_config: Any = None,
        auto_setup_query: bool = True
    ):
        """初始化数据库连接

        Args:
            database_url: 数据库连接URL（如果提供 config 则忽略）
            echo: 是否输出SQL语句（如果提供 config 则忽略）
            pool_size: 连接池大小
            max_overflow: 最大溢出连接数
            pool_timeout: 连接超时时间
            pool_recycle: 连接回收时间
            pool_pre_ping: 连接前是否ping
            sql_log_enabled: 是否启用SQL日志（如果提供 logging_config 则忽略）
            logger: 日志记录器
            scopefunc: session作用域函数，默认按上下文变量区分
            config: 数据库配置对象（DatabaseSettings）
            logging_config: 日志配置对象（LoggingSettings）
            auto_setup_query: 是否自动设置 CoreModel.query 属性，默认 True

        Returns:
            tuple: (engine, session_scope)

        使用示例:
            engine, session = init_database("sqlite:///./tree.db")
            engine, session = init_database(config=settings.database, logging_config=settings.logging)
        """
        if config is not None:
            database_url = getattr(config, "url", database_url)
            echo = getattr(config, "echo", echo)
            pool_size = getattr(config, "pool_size", pool_size)
            max_overflow = getattr(config, "max_overflow", max_overflow)
            pool_timeout = getattr(config, "pool_timeout", pool_timeout)
            pool_recycle = getattr(config, "pool_recycle", pool_recycle)
            pool_pre_ping = getattr(config, "pool_pre_ping", pool_pre_ping)

        if logging_config is not None:
            sql_log_enabled = getattr(logging_config, "sql_log_enabled", sql_log_enabled)

        if not database_url:
            raise ValueError("database_url 是必需的，请通过参数或 config 提供")

        if logger is None:
            logger = _logger

        logger.info(f"数据库配置URL: {database_url}")

        engine_echo = "debug" if sql_log_enabled else echo

        try:
            if database_url.startswith("sqlite"):
                db_path = database_url.split(":///", 1)[-1]
                if db_path in ("", ":memory:") or database_url == "sqlite://":
                    # 内存数据库：使用 StaticPool（单连接）
                    self._engine = create_engine(
                        database_url,
                        echo=engine_echo,
                        connect_args={"check_same_thread": False},
                        poolclass=StaticPool,
                    )
                    logger.info("SQLite内存数据库引擎创建成功（StaticPool）")
                else:
                    self._engine = create_engine(
                        database_url,
                        echo=engine_echo,
                        connect_args={"check_same_thread": False, "timeout": pool_timeout},
                    )
                    logger.info(f"SQLite文件数据库引擎创建成功: {db_path}")
            else:
                self._engine = create_engine(
                    database_url,
                    echo=engine_echo,
                    pool_pre_ping=pool_pre_ping,
                    pool_size=pool_size,
                    max_overflow=max_overflow,
                    pool_timeout=pool_timeout,
                    pool_recycle=pool_recycle
                )
                logger.info("数据库引擎创建成功")
        except Exception as e:
            logger.error(f"创建数据库引擎失败: {str(e)}")
            raise

        self._session_maker = sessionmaker(
            autocommit=False,
            autoflush=True,
            bind=self._engine,
        )

        if scopefunc is None:
            scopefunc = self._get_scope_id

        self._session_scope = scoped_session(self._session_maker, scopefunc=scopefunc)

        if auto_setup_query:
            from .core_model import CoreModel
            CoreModel.query = self._session_scope.query_property()
            logger.info("CoreModel.query 属性已自动设置")

        logger.info("数据库session创建成功")

        return self._engine, self._session_scope

    def get_session(self) -> Session:
        """获取当前作用域的 session（低级 API，优先使用 db_session_scope()）"""
        if self._session_scope is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._session_scope()

    def cleanup(self):
        """清理当前作用域的 session（幂等，多次调用安全）

        有未提交的更改时先尝试提交，失败则回滚，最后归还连接。
        """
        scope_id = self._get_scope_id()

        if self._session_scope and self._session_scope.registry.has():
            session = self._session_scope()

            if session.dirty or session.new or session.deleted:
                try:
                    session.commit()
                    _logger.debug(f"[scope_id={scope_id}] 自动提交成功")
                except Exception as e:
                    _logger.warning(f"[scope_id={scope_id}] 自动提交失败，回滚: {e}")
                    session.rollback()

            self._session_scope.remove()
            _logger.debug(f"[scope_id={scope_id}] session_scope 移除完成")

        self._scope_id_var.set('')

    def _set_scope_id(self, scope_id: Optional[str] = None) -> str:
        """设置当前作用域ID（已存在时不覆盖）"""
        existing = self._scope_id_var.get()
        if existing:
            return existing
        scope_id = scope_id or uuid4().hex[:8]
        self._scope_id_var.set(scope_id)
        return scope_id

    def _get_scope_id(self) -> str:
        """获取当前作用域ID，未设置时自动生成"""
        value = self._scope_id_var.get()
        if not value:
            value = uuid4().hex[:8]
            self._scope_id_var.set(value)
        return value


# ==================== 全局单例 ====================

db_manager = DatabaseManager()


# ==================== 公开 API 函数 ====================

def init_database(
    database_url: str = None,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 3600,
    pool_pre_ping: bool = True,
    sql_log_enabled: bool = False,
    logger: logging.Logger = None,
    scopefunc: Callable = None,
    config: Any = None,
    logging_config: Any = None,
    auto_setup_query: bool = True
):
    """初始化数据库连接

    这是 db_manager.init() 的便捷包装函数，参数说明见 DatabaseManager.init()。

    Returns:
        tuple: (engine, session_scope)
    """
    return db_manager.init(
        database_url=database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
        sql_log_enabled=sql_log_enabled,
        logger=logger,
        scopefunc=scopefunc,
        config=config,
        logging_config=logging_config,
        auto_setup_query=auto_setup_query
    )


def get_engine():
    """获取数据库引擎"""
    return db_manager.engine


def on_request_end():
    """清理当前作用域的 session，db_manager.cleanup() 的便捷包装"""
    db_manager.cleanup()


@contextmanager
def db_session_scope(
    scope_id: str = None,
    auto_commit: bool = True
) -> Generator[Session, None, None]:
    """session 上下文管理器（事务边界）

    Args:
        scope_id: 作用域ID，用于日志追踪，不传则自动生成
        auto_commit: 是否自动提交，默认 True

    使用示例:
        with db_session_scope():
            node = Category.get(2)
            node.parent = None
            node.save()
        # 节点及其子孙的路径改写在同一事务中提交，异常时整体回滚
    """
    db_manager._set_scope_id(scope_id)
    session = db_manager.get_session()
    try:
        yield session
        if auto_commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        on_request_end()


def with_db_session(
    scope_id: str = None,
    auto_commit: bool = True
):
    """数据库 session 装饰器

    自动为函数注入 session 参数（第一个位置参数），并管理 session 生命周期。

    使用示例:
        @with_db_session()
        def rebuild(session):
            Category.rebuild_depth_cache()

        rebuild()
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        func_scope_id = scope_id or f"{func.__name__}-{{rand}}"

        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            db_manager._set_scope_id(func_scope_id.replace("{rand}", uuid4().hex[:6]))
            session = db_manager.get_session()
            try:
                result = func(session, *args, **kwargs)
                if auto_commit:
                    session.commit()
                return result
            except Exception:
                session.rollback()
                raise
            finally:
                on_request_end()

        return wrapper

    return decorator
